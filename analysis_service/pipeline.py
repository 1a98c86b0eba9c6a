"""
SHOTCOACH Analysis Service - Analysis Pipeline

Ties the pieces together for one recorded shot: route the video through
the tiered strategies, build feedback against the user's history and
record the shooting session.
"""

import logging
import os
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from core.config import settings
from core.database import get_database
from core.threading import get_strategy_pool
from analysis_service.models.capability_assessor import CapabilityAssessor
from analysis_service.models.connectivity import check_connectivity
from analysis_service.models.errors import AnalysisError
from analysis_service.models.pose_engine import read_video_info
from analysis_service.models.processing_router import (
    AdaptiveProcessingRouter,
    RoutedAnalysis,
    initialize_processing_config,
    select_processing_tier,
    update_config_for_connectivity,
)
from analysis_service.models.repositories import CapabilityCache, SessionRepository
from analysis_service.models.strategies import AnalysisStrategies
from analysis_service.models.types import (
    ConnectivityStatus,
    ProcessingConfig,
    ShootingSession,
    SyncStatus,
    UserConsent,
    VideoMetadata,
    validate_analysis_result,
)
from feedback_service.models.adaptive_recommendations import build_progress_summary
from feedback_service.models.feedback_integration import (
    CompleteFeedback,
    get_feedback_for_session,
    get_progress_insights,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    session: ShootingSession
    routed: RoutedAnalysis
    feedback: CompleteFeedback
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "processing": {
                "tier": self.routed.tier.value,
                "processing_time": round(self.routed.processing_time, 1),
                "fallback_used": self.routed.fallback_used,
            },
            "analysis": self.routed.data.to_dict(),
            "feedback": self.feedback.to_dict(),
        }


def cleanup_session_video(video_path: str):
    """Delete a temporary video; failures are logged, never raised."""
    try:
        if video_path and os.path.exists(video_path):
            os.unlink(video_path)
    except OSError as e:
        logger.warning(f"⚠️ Could not clean up video {video_path}: {e}")


class AnalysisPipeline:
    """
    Per-process analysis context holding the processing config.
    
    The database client is passed in; nothing here reaches for globals.
    """
    
    def __init__(
        self,
        db: Any,
        strategies: Optional[AnalysisStrategies] = None,
        router: Optional[AdaptiveProcessingRouter] = None,
        assessor: Optional[CapabilityAssessor] = None,
        connectivity_probe: Callable[[], ConnectivityStatus] = check_connectivity,
    ):
        self.sessions = SessionRepository(db)
        self.assessor = assessor or CapabilityAssessor(CapabilityCache(db))
        self.strategies = strategies or AnalysisStrategies()
        self.router = router or AdaptiveProcessingRouter(
            worker_pool=get_strategy_pool(),
            strategy_timeout=settings.STRATEGY_TIMEOUT_SECONDS,
        )
        self.connectivity_probe = connectivity_probe
        self._config: Optional[ProcessingConfig] = None
        self._lock = threading.Lock()
    
    # ========================================
    # Processing config
    # ========================================
    
    def initialize(self, consent: Optional[UserConsent] = None) -> ProcessingConfig:
        consent = consent or UserConsent(
            cloud_processing=settings.CLOUD_PROCESSING_CONSENT,
            data_sharing=settings.DATA_SHARING_CONSENT,
        )
        config = initialize_processing_config(self.assessor, consent, self.connectivity_probe)
        with self._lock:
            self._config = config
        return config
    
    @property
    def config(self) -> ProcessingConfig:
        with self._lock:
            config = self._config
        return config if config is not None else self.initialize()
    
    def update_connectivity(self, connectivity: Optional[ConnectivityStatus] = None) -> ProcessingConfig:
        connectivity = connectivity or self.connectivity_probe()
        config = update_config_for_connectivity(self.config, connectivity)
        with self._lock:
            self._config = config
        logger.info(f"📡 Connectivity changed, tier now {config.selected_tier.value}")
        return config
    
    def update_consent(self, consent: UserConsent) -> ProcessingConfig:
        current = self.config
        connectivity = self.connectivity_probe()
        config = current.evolve(
            user_consent=consent,
            has_connectivity=connectivity.is_connected,
            selected_tier=select_processing_tier(current.device_capabilities, connectivity, consent),
        )
        with self._lock:
            self._config = config
        return config
    
    def refresh_capabilities(self, force_refresh: bool = True) -> ProcessingConfig:
        current = self.config
        capabilities = self.assessor.detect_device_capabilities(force_refresh=force_refresh)
        connectivity = self.connectivity_probe()
        config = current.evolve(
            device_capabilities=capabilities,
            has_connectivity=connectivity.is_connected,
            selected_tier=select_processing_tier(capabilities, connectivity, current.user_consent),
        )
        with self._lock:
            self._config = config
        return config
    
    # ========================================
    # Analysis
    # ========================================
    
    def analyze_video(self, user_id: str, video_ref: str) -> AnalysisOutcome:
        """
        Analyse one shot video and record the session.
        
        Raises:
            AnalysisExhaustedError: no tier could analyse the video.
        """
        routed = self.router.route_video_analysis(video_ref, self.config, self.strategies)
        check = validate_analysis_result(routed.data)
        if not check["valid"]:
            logger.warning(f"⚠️ Suspicious metrics from {routed.tier.value}: {check['issues']}")
        
        # History is read before the new session is stored
        feedback = get_feedback_for_session(
            user_id, routed.data, routed.tier, self.sessions.get_sessions_for_user
        )
        
        session = self._build_session(user_id, video_ref, routed)
        try:
            self.sessions.save_session(session)
            session.sync_status = SyncStatus.SYNCED
        except Exception as e:
            logger.error(f"❌ Failed to save session {session.id}: {e}")
            session.sync_status = SyncStatus.PENDING
        
        return AnalysisOutcome(session=session, routed=routed, feedback=feedback)
    
    def _build_session(self, user_id: str, video_ref: str, routed: RoutedAnalysis) -> ShootingSession:
        metadata = VideoMetadata()
        duration = 0.0
        try:
            info = read_video_info(video_ref)
            metadata = VideoMetadata(resolution=info.resolution, frame_rate=info.frame_rate)
            duration = info.duration_ms
        except AnalysisError as e:
            logger.debug(f"No video metadata for {video_ref}: {e}")
        
        return ShootingSession(
            id=f"session_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            timestamp=datetime.now(timezone.utc),
            form_score=routed.data.overall_score,
            detected_issues=list(routed.data.detected_issues),
            duration=duration,
            form_analysis=routed.data,
            video_metadata=metadata,
            sync_status=SyncStatus.LOCAL,
            analysis_tier=routed.tier,
        )
    
    # ========================================
    # Progress
    # ========================================
    
    def get_progress(self, user_id: str) -> Dict[str, Any]:
        summary = build_progress_summary(user_id, self.sessions.get_sessions_for_user(user_id))
        return {
            "summary": summary.to_dict(),
            "insights": get_progress_insights(summary),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON ACCESSOR
# ═══════════════════════════════════════════════════════════════════════════════

_pipeline: Optional[AnalysisPipeline] = None


def get_analysis_pipeline() -> AnalysisPipeline:
    """Get the app-wide pipeline bound to the configured database."""
    global _pipeline
    if _pipeline is None:
        _pipeline = AnalysisPipeline(get_database())
    return _pipeline
