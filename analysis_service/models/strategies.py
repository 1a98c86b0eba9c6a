"""
SHOTCOACH Analysis Service - Analysis Strategies

Tier -> strategy dispatch used as the router's plug-in, plus the
full_ml / cloud delegation for callers that bypass the router.

full_ml and cloud have no implementation of their own and are served by
lightweight_ml, then basic. The router asks `resolve_tier` for the tier
that actually runs and walks the fallback chain from there, so the
reported tier is always the one that ran. Asked directly for full_ml or
cloud, `analyze` raises TierUnavailableError.
`analyze_with_delegation` does the same resolution for callers that
bypass the router.
"""

import importlib.util
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from core.config import settings
from .basic_analyzer import BasicFormAnalyzer
from .errors import AnalysisExhaustedError, TierUnavailableError
from .lightweight_analyzer import LightweightFormAnalyzer, check_video_requirements
from .pose_engine import PoseModelConfig, VideoInfo
from .types import (
    AnalysisTier,
    DeviceCapabilities,
    DeviceTier,
    FormAnalysisResult,
    GRADE_VALUES,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL CATALOGUE
# ═══════════════════════════════════════════════════════════════════════════════

ML_MODELS: Dict[AnalysisTier, Optional[PoseModelConfig]] = {
    AnalysisTier.BASIC: None,
    AnalysisTier.LIGHTWEIGHT_ML: PoseModelConfig(
        name="pose_landmarker_lite",
        model_path=settings.POSE_MODEL_PATH,
    ),
    AnalysisTier.FULL_ML: PoseModelConfig(
        name="pose_landmarker_full",
        model_path=str(Path(settings.POSE_MODEL_PATH).with_name("pose_landmarker_full.task")),
    ),
    AnalysisTier.CLOUD: None,
}


def select_ml_model(capabilities: DeviceCapabilities) -> AnalysisTier:
    """Heaviest local model tier the device can run."""
    if capabilities.tier == DeviceTier.HIGH and capabilities.ml_framework_supported:
        return AnalysisTier.FULL_ML
    if capabilities.tier == DeviceTier.MID and capabilities.ml_framework_supported:
        return AnalysisTier.LIGHTWEIGHT_ML
    return AnalysisTier.BASIC


def is_ml_analysis_available(tier: AnalysisTier) -> bool:
    """Whether the tier's model and runtime are present on this host."""
    if tier == AnalysisTier.BASIC:
        return True
    if tier == AnalysisTier.CLOUD:
        return False
    if tier in (AnalysisTier.LIGHTWEIGHT_ML, AnalysisTier.FULL_ML):
        model = ML_MODELS[tier]
        return importlib.util.find_spec("mediapipe") is not None and Path(model.model_path).exists()
    raise ValueError(f"Unknown analysis tier: {tier}")


def get_recommended_analysis_tier(preferred: AnalysisTier) -> AnalysisTier:
    if is_ml_analysis_available(preferred):
        return preferred
    if preferred in (AnalysisTier.CLOUD, AnalysisTier.FULL_ML) and is_ml_analysis_available(AnalysisTier.LIGHTWEIGHT_ML):
        logger.info(f"Falling back from {preferred.value} to lightweight_ml")
        return AnalysisTier.LIGHTWEIGHT_ML
    return AnalysisTier.BASIC


# ═══════════════════════════════════════════════════════════════════════════════
# VIDEO CHECKS AND ESTIMATES
# ═══════════════════════════════════════════════════════════════════════════════

def validate_analysis_tier_for_video(tier: AnalysisTier, info: VideoInfo) -> Dict[str, Any]:
    """Basic and cloud accept anything; local ML tiers have minimums."""
    if tier in (AnalysisTier.LIGHTWEIGHT_ML, AnalysisTier.FULL_ML):
        problems = check_video_requirements(info)
        if problems:
            return {"valid": False, "reason": f"Video unsuitable for ML analysis: {'; '.join(problems)}"}
    return {"valid": True, "reason": None}


def estimate_processing_time(tier: AnalysisTier, duration_ms: float) -> float:
    """Expected processing time in ms."""
    seconds = duration_ms / 1000
    if tier == AnalysisTier.BASIC:
        return 1000.0
    if tier == AnalysisTier.LIGHTWEIGHT_ML:
        return 2000 + seconds * 500
    if tier == AnalysisTier.FULL_ML:
        return 4000 + seconds * 1000
    if tier == AnalysisTier.CLOUD:
        return 5000.0
    raise ValueError(f"Unknown analysis tier: {tier}")


@dataclass
class AnalysisComparison:
    tier1: AnalysisTier
    tier2: AnalysisTier
    score_difference: int
    issue_overlap: float  # 0-1
    metrics_correlation: float  # 0-1
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier1": self.tier1.value,
            "tier2": self.tier2.value,
            "score_difference": self.score_difference,
            "issue_overlap": round(self.issue_overlap, 3),
            "metrics_correlation": round(self.metrics_correlation, 3),
        }


def compare_analysis_results(
    result1: FormAnalysisResult,
    tier1: AnalysisTier,
    result2: FormAnalysisResult,
    tier2: AnalysisTier,
) -> AnalysisComparison:
    """How closely two tiers agree on the same video."""
    score_difference = abs(GRADE_VALUES[result1.overall_score] - GRADE_VALUES[result2.overall_score])
    
    types1 = {issue.type for issue in result1.detected_issues}
    types2 = {issue.type for issue in result2.detected_issues}
    issue_overlap = len(types1 & types2) / max(len(types1), len(types2), 1)
    
    m1 = result1.biomechanical_metrics.values()
    m2 = result2.biomechanical_metrics.values()
    avg_diff = sum(abs(m1[key] - m2[key]) for key in m1) / len(m1)
    metrics_correlation = max(0.0, 100 - avg_diff) / 100
    
    return AnalysisComparison(
        tier1=tier1,
        tier2=tier2,
        score_difference=score_difference,
        issue_overlap=issue_overlap,
        metrics_correlation=metrics_correlation,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# DISPATCH
# ═══════════════════════════════════════════════════════════════════════════════

# Tiers without an implementation, and the order they delegate to
DELEGATED_TIERS: Dict[AnalysisTier, Tuple[AnalysisTier, ...]] = {
    AnalysisTier.FULL_ML: (AnalysisTier.LIGHTWEIGHT_ML, AnalysisTier.BASIC),
    AnalysisTier.CLOUD: (AnalysisTier.LIGHTWEIGHT_ML, AnalysisTier.BASIC),
}


def resolve_delegation(tier: AnalysisTier) -> Tuple[AnalysisTier, ...]:
    """Implemented tiers to try, in order, for a requested tier."""
    if tier in (AnalysisTier.BASIC, AnalysisTier.LIGHTWEIGHT_ML):
        return (tier,)
    if tier in DELEGATED_TIERS:
        return DELEGATED_TIERS[tier]
    raise ValueError(f"Unknown analysis tier: {tier}")


class AnalysisStrategies:
    """
    One analyzer per implemented tier.
    
    Instances are callable as `(video_ref, tier) -> FormAnalysisResult`,
    the interface the processing router expects.
    """
    
    def __init__(
        self,
        basic: Optional[BasicFormAnalyzer] = None,
        lightweight: Optional[LightweightFormAnalyzer] = None,
    ):
        self.basic = basic or BasicFormAnalyzer()
        self.lightweight = lightweight or LightweightFormAnalyzer()
    
    def __call__(self, video_ref: str, tier: AnalysisTier) -> FormAnalysisResult:
        return self.analyze(video_ref, tier)
    
    def resolve_tier(self, tier: AnalysisTier) -> AnalysisTier:
        """Tier whose analyzer actually serves `tier`."""
        return resolve_delegation(tier)[0]
    
    def analyze(self, video_ref: str, tier: AnalysisTier) -> FormAnalysisResult:
        """Run exactly the requested tier."""
        if tier == AnalysisTier.BASIC:
            return self.basic.analyze(video_ref)
        if tier == AnalysisTier.LIGHTWEIGHT_ML:
            return self.lightweight.analyze(video_ref)
        if tier == AnalysisTier.FULL_ML:
            raise TierUnavailableError("full_ml analysis is not implemented; degrade via fallback")
        if tier == AnalysisTier.CLOUD:
            raise TierUnavailableError("cloud analysis is not implemented; degrade via fallback")
        raise ValueError(f"Unknown analysis tier: {tier}")
    
    def analyze_with_delegation(self, video_ref: str, tier: AnalysisTier) -> Tuple[FormAnalysisResult, AnalysisTier]:
        """
        Resolve full_ml / cloud to lightweight_ml, then basic.
        
        Returns the result and the tier that produced it.
        
        Raises:
            AnalysisExhaustedError: every delegate failed.
        """
        attempted: List[str] = []
        last_error: Optional[Exception] = None
        
        for delegate in resolve_delegation(tier):
            attempted.append(delegate.value)
            try:
                result = self.analyze(video_ref, delegate)
            except Exception as e:
                last_error = e
                logger.warning(f"⚠️ {delegate.value} failed while resolving {tier.value}: {e}")
                continue
            if delegate != tier:
                logger.info(f"↪️ {tier.value} resolved to {delegate.value}")
            return result, delegate
        
        raise AnalysisExhaustedError(attempted, last_error) from last_error
