"""
SHOTCOACH Analysis Service - Adaptive Processing Router

Picks an analysis tier from device capability, connectivity and consent,
runs the tier's strategy and walks the fixed fallback chain on failure.

Fallback walk for a failing tier T:
    T -> FALLBACK_CHAIN[T] -> (basic, as a last resort, if not tried yet)

T is the selected tier, or the tier the plug-in runs it as when the
plug-in offers `resolve_tier`.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from core.config import settings
from core.threading import WorkerPool
from .capability_assessor import CapabilityAssessor
from .connectivity import check_connectivity
from .errors import AnalysisExhaustedError, StrategyTimeoutError
from .types import (
    AnalysisTier,
    ConnectionType,
    ConnectivityStatus,
    DeviceCapabilities,
    DeviceTier,
    FALLBACK_CHAIN,
    FormAnalysisResult,
    ProcessingConfig,
    UserConsent,
)

logger = logging.getLogger(__name__)

# (video_ref, tier) -> FormAnalysisResult, may raise
StrategyFn = Callable[[str, AnalysisTier], FormAnalysisResult]


@dataclass(frozen=True)
class RoutedAnalysis:
    """Result of a routed analysis: the data and the tier that produced it."""
    data: FormAnalysisResult
    tier: AnalysisTier
    processing_time: float  # ms
    fallback_used: bool
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data.to_dict(),
            "tier": self.tier.value,
            "processing_time": round(self.processing_time, 1),
            "fallback_used": self.fallback_used,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# TIER SELECTION (pure)
# ═══════════════════════════════════════════════════════════════════════════════

def select_processing_tier(
    capabilities: DeviceCapabilities,
    connectivity: ConnectivityStatus,
    consent: UserConsent,
) -> AnalysisTier:
    """First matching rule wins: cloud, full_ml, lightweight_ml, basic."""
    if (
        connectivity.is_connected
        and consent.cloud_processing
        and connectivity.connection_type == ConnectionType.WIFI
        and not connectivity.is_metered
    ):
        return AnalysisTier.CLOUD
    
    if capabilities.tier == DeviceTier.HIGH and capabilities.ml_framework_supported:
        return AnalysisTier.FULL_ML
    
    if capabilities.tier == DeviceTier.MID and capabilities.ml_framework_supported:
        return AnalysisTier.LIGHTWEIGHT_ML
    
    return AnalysisTier.BASIC


def get_fallback_tier(tier: AnalysisTier) -> Optional[AnalysisTier]:
    return FALLBACK_CHAIN[tier]


def validate_processing_tier(tier: AnalysisTier, config: ProcessingConfig) -> bool:
    """Check the tier is still legal for the current config."""
    if tier == AnalysisTier.CLOUD:
        return config.has_connectivity and config.user_consent.cloud_processing
    if tier in (AnalysisTier.FULL_ML, AnalysisTier.LIGHTWEIGHT_ML):
        return config.device_capabilities.ml_framework_supported
    if tier == AnalysisTier.BASIC:
        return True
    raise ValueError(f"Unknown analysis tier: {tier}")


def get_recommended_tier(config: ProcessingConfig) -> AnalysisTier:
    """
    Recompute the tier from a stored config.
    
    The config only remembers whether the device is online, so a connected
    device is treated as unmetered wifi.
    """
    connectivity = ConnectivityStatus(
        is_connected=config.has_connectivity,
        connection_type=ConnectionType.WIFI if config.has_connectivity else ConnectionType.NONE,
        is_metered=False,
    )
    return select_processing_tier(config.device_capabilities, connectivity, config.user_consent)


def update_config_for_connectivity(
    config: ProcessingConfig,
    connectivity: ConnectivityStatus,
) -> ProcessingConfig:
    """New config with the tier re-selected for the new connectivity."""
    return config.evolve(
        selected_tier=select_processing_tier(
            config.device_capabilities, connectivity, config.user_consent
        ),
        has_connectivity=connectivity.is_connected,
    )


def initialize_processing_config(
    assessor: CapabilityAssessor,
    consent: UserConsent,
    connectivity_probe: Callable[[], ConnectivityStatus] = check_connectivity,
) -> ProcessingConfig:
    """Compose capability and connectivity probes with the user's consent."""
    capabilities = assessor.detect_device_capabilities()
    connectivity = connectivity_probe()
    tier = select_processing_tier(capabilities, connectivity, consent)
    
    logger.info(
        f"⚙️ Processing config: tier={tier.value} device={capabilities.tier.value} "
        f"connected={connectivity.is_connected}"
    )
    return ProcessingConfig(
        selected_tier=tier,
        device_capabilities=capabilities,
        has_connectivity=connectivity.is_connected,
        user_consent=consent,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# ROUTER
# ═══════════════════════════════════════════════════════════════════════════════

class AdaptiveProcessingRouter:
    """
    Runs a strategy for the configured tier with cascading fallback.
    
    When a worker pool and timeout are given, each strategy call runs in
    the pool and a call exceeding the timeout counts as a failure.
    """
    
    def __init__(
        self,
        worker_pool: Optional[WorkerPool] = None,
        strategy_timeout: Optional[float] = None,
        basic_budget_ms: float = None,
        ml_budget_ms: float = None,
    ):
        self.worker_pool = worker_pool
        self.strategy_timeout = strategy_timeout
        self.basic_budget_ms = basic_budget_ms or settings.BASIC_TIER_BUDGET_MS
        self.ml_budget_ms = ml_budget_ms or settings.ML_TIER_BUDGET_MS
    
    def soft_budget_ms(self, tier: AnalysisTier) -> float:
        return self.basic_budget_ms if tier == AnalysisTier.BASIC else self.ml_budget_ms
    
    def route_video_analysis(
        self,
        video_ref: str,
        config: ProcessingConfig,
        strategy_fn: StrategyFn,
    ) -> RoutedAnalysis:
        """
        Analyse a video with the configured tier, degrading on failure.
        
        Raises:
            AnalysisExhaustedError: every attempted tier failed. The most
                recent strategy error is chained as the cause.
        """
        start = time.perf_counter()
        tier = config.selected_tier
        fallback_used = False
        
        if not validate_processing_tier(tier, config):
            corrected = get_recommended_tier(config)
            logger.warning(f"↪️ Tier {tier.value} no longer valid, using {corrected.value}")
            tier = corrected
            fallback_used = True
        
        # Plug-ins that run some tiers under another tier's analyzer say so
        resolve_tier = getattr(strategy_fn, "resolve_tier", None)
        if resolve_tier is not None:
            resolved = resolve_tier(tier)
            if resolved != tier:
                logger.info(f"↪️ {tier.value} analysis runs as {resolved.value}")
                tier = resolved
        
        attempted: List[AnalysisTier] = []
        last_error: Optional[Exception] = None
        
        for attempt_tier in self._attempt_order(tier):
            attempted.append(attempt_tier)
            try:
                data = self._invoke(strategy_fn, video_ref, attempt_tier)
            except Exception as e:
                last_error = e
                logger.warning(f"⚠️ {attempt_tier.value} analysis failed: {e}")
                continue
            
            elapsed_ms = (time.perf_counter() - start) * 1000
            budget = self.soft_budget_ms(attempt_tier)
            if elapsed_ms > budget:
                logger.warning(
                    f"🐢 {attempt_tier.value} analysis took {elapsed_ms:.0f}ms "
                    f"(budget {budget:.0f}ms)"
                )
            
            used_fallback = fallback_used or attempt_tier != tier
            if used_fallback:
                logger.info(f"↪️ Analysis served by fallback tier {attempt_tier.value}")
            
            return RoutedAnalysis(
                data=data,
                tier=attempt_tier,
                processing_time=elapsed_ms,
                fallback_used=used_fallback,
            )
        
        logger.error(f"❌ All analysis tiers failed: {[t.value for t in attempted]}")
        raise AnalysisExhaustedError([t.value for t in attempted], last_error) from last_error
    
    @staticmethod
    def _attempt_order(tier: AnalysisTier) -> List[AnalysisTier]:
        """Requested tier, its fallback, then basic if not already covered."""
        order = [tier]
        fallback = get_fallback_tier(tier)
        if fallback is not None:
            order.append(fallback)
            if fallback != AnalysisTier.BASIC:
                order.append(AnalysisTier.BASIC)
        return order
    
    def _invoke(self, strategy_fn: StrategyFn, video_ref: str, tier: AnalysisTier) -> FormAnalysisResult:
        if self.worker_pool is None or self.strategy_timeout is None:
            return strategy_fn(video_ref, tier)
        
        try:
            return self.worker_pool.run(strategy_fn, video_ref, tier, timeout=self.strategy_timeout)
        except TimeoutError as e:
            raise StrategyTimeoutError(f"{tier.value} analysis timed out") from e
