"""
SHOTCOACH Analysis Service Models

Capability assessment, tier routing and the basic / pose-based analysis
strategies.
"""

from .types import (
    AnalysisTier,
    BiomechanicalMetrics,
    ConnectionType,
    ConnectivityStatus,
    DeviceCapabilities,
    DeviceTier,
    FormAnalysisResult,
    FormIssue,
    FormIssueType,
    FormScore,
    IssueSeverity,
    ProcessingConfig,
    ShootingSession,
    UserConsent,
)

from .errors import (
    AnalysisError,
    AnalysisExhaustedError,
    InvalidVideoError,
    ModelLoadError,
    PoseDetectionError,
    StrategyTimeoutError,
    TierUnavailableError,
)

from .capability_assessor import CapabilityAssessor
from .connectivity import check_connectivity
from .processing_router import (
    AdaptiveProcessingRouter,
    RoutedAnalysis,
    get_fallback_tier,
    select_processing_tier,
    update_config_for_connectivity,
    validate_processing_tier,
)
from .repositories import CapabilityCache, SessionRepository
from .basic_analyzer import BasicFormAnalyzer
from .lightweight_analyzer import LightweightFormAnalyzer
from .strategies import AnalysisStrategies

__all__ = [
    # Types
    "AnalysisTier",
    "BiomechanicalMetrics",
    "ConnectionType",
    "ConnectivityStatus",
    "DeviceCapabilities",
    "DeviceTier",
    "FormAnalysisResult",
    "FormIssue",
    "FormIssueType",
    "FormScore",
    "IssueSeverity",
    "ProcessingConfig",
    "ShootingSession",
    "UserConsent",
    # Errors
    "AnalysisError",
    "AnalysisExhaustedError",
    "InvalidVideoError",
    "ModelLoadError",
    "PoseDetectionError",
    "StrategyTimeoutError",
    "TierUnavailableError",
    # Pipeline pieces
    "CapabilityAssessor",
    "check_connectivity",
    "AdaptiveProcessingRouter",
    "RoutedAnalysis",
    "get_fallback_tier",
    "select_processing_tier",
    "update_config_for_connectivity",
    "validate_processing_tier",
    "CapabilityCache",
    "SessionRepository",
    "BasicFormAnalyzer",
    "LightweightFormAnalyzer",
    "AnalysisStrategies",
]
