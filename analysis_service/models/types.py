"""
SHOTCOACH Analysis Service - Core Types

Enums and dataclasses shared by the capability assessor, the processing
router, the analysis strategies and the feedback service.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class DeviceTier(str, Enum):
    """Hardware class of the device running the analysis."""
    LOW = "low"
    MID = "mid"
    HIGH = "high"


class ConnectionType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    NONE = "none"


class AnalysisTier(str, Enum):
    """Analysis strategies, ordered from cheapest to heaviest."""
    BASIC = "basic"
    LIGHTWEIGHT_ML = "lightweight_ml"
    FULL_ML = "full_ml"
    CLOUD = "cloud"


# Fixed fallback order: every tier degrades to exactly one lower tier
FALLBACK_CHAIN: Dict[AnalysisTier, Optional[AnalysisTier]] = {
    AnalysisTier.CLOUD: AnalysisTier.FULL_ML,
    AnalysisTier.FULL_ML: AnalysisTier.LIGHTWEIGHT_ML,
    AnalysisTier.LIGHTWEIGHT_ML: AnalysisTier.BASIC,
    AnalysisTier.BASIC: None,
}


class FormScore(str, Enum):
    """Letter grade for a shot."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class FormIssueType(str, Enum):
    ELBOW_FLARE = "elbow_flare"
    WRIST_ANGLE = "wrist_angle"
    STANCE = "stance"
    FOLLOW_THROUGH = "follow_through"
    
    @property
    def label(self) -> str:
        """Human-readable name, e.g. 'follow through'."""
        return self.value.replace("_", " ")


class IssueSeverity(str, Enum):
    MAJOR = "major"
    MODERATE = "moderate"
    MINOR = "minor"
    
    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return SEVERITY_RANK[self]


SEVERITY_RANK: Dict[IssueSeverity, int] = {
    IssueSeverity.MAJOR: 0,
    IssueSeverity.MODERATE: 1,
    IssueSeverity.MINOR: 2,
}

# Letter grade to representative numeric score
GRADE_VALUES: Dict[FormScore, int] = {
    FormScore.A: 95,
    FormScore.B: 85,
    FormScore.C: 75,
    FormScore.D: 65,
    FormScore.F: 50,
}


class SyncStatus(str, Enum):
    LOCAL = "local"
    SYNCED = "synced"
    PENDING = "pending"


class LightingCondition(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def score_to_grade(total_score: float) -> FormScore:
    """Map a 0-100 score to a letter grade (>=90 A, >=80 B, >=70 C, >=60 D)."""
    if total_score >= 90:
        return FormScore.A
    if total_score >= 80:
        return FormScore.B
    if total_score >= 70:
        return FormScore.C
    if total_score >= 60:
        return FormScore.D
    return FormScore.F


def clamp_score(value: float) -> int:
    """Round a sub-score and clamp it to [0, 100]."""
    return int(max(0, min(100, round(value))))


# ═══════════════════════════════════════════════════════════════════════════════
# DEVICE / CONNECTIVITY / CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeviceCapabilities:
    """Measured capabilities of the analysis host."""
    tier: DeviceTier
    available_ram: int  # MB
    cpu_cores: int
    has_gpu: bool
    ml_framework_supported: bool
    benchmark_score: int  # 0-100
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "available_ram": self.available_ram,
            "cpu_cores": self.cpu_cores,
            "has_gpu": self.has_gpu,
            "ml_framework_supported": self.ml_framework_supported,
            "benchmark_score": self.benchmark_score,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceCapabilities":
        return cls(
            tier=DeviceTier(data["tier"]),
            available_ram=int(data["available_ram"]),
            cpu_cores=int(data["cpu_cores"]),
            has_gpu=bool(data["has_gpu"]),
            ml_framework_supported=bool(data["ml_framework_supported"]),
            benchmark_score=int(data["benchmark_score"]),
        )


@dataclass(frozen=True)
class ConnectivityStatus:
    is_connected: bool
    connection_type: ConnectionType
    is_metered: bool
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "connection_type": self.connection_type.value,
            "is_metered": self.is_metered,
        }


DISCONNECTED = ConnectivityStatus(
    is_connected=False,
    connection_type=ConnectionType.NONE,
    is_metered=False,
)


@dataclass(frozen=True)
class UserConsent:
    cloud_processing: bool = False
    data_sharing: bool = False
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "cloud_processing": self.cloud_processing,
            "data_sharing": self.data_sharing,
        }


@dataclass(frozen=True)
class ProcessingConfig:
    """
    Processing configuration for one app session.
    
    Frozen: connectivity changes produce a new value via `evolve()`.
    """
    selected_tier: AnalysisTier
    device_capabilities: DeviceCapabilities
    has_connectivity: bool
    user_consent: UserConsent
    
    def evolve(self, **changes) -> "ProcessingConfig":
        return replace(self, **changes)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_tier": self.selected_tier.value,
            "device_capabilities": self.device_capabilities.to_dict(),
            "has_connectivity": self.has_connectivity,
            "user_consent": self.user_consent.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYSIS RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FormIssue:
    """A single detected form problem with drills to fix it."""
    type: FormIssueType
    severity: IssueSeverity
    description: str
    recommended_drills: List[str] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "recommended_drills": list(self.recommended_drills),
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormIssue":
        return cls(
            type=FormIssueType(data["type"]),
            severity=IssueSeverity(data["severity"]),
            description=data.get("description", ""),
            recommended_drills=list(data.get("recommended_drills", [])),
        )


def sort_by_severity(issues: List[FormIssue]) -> List[FormIssue]:
    """Stable sort, most severe first."""
    return sorted(issues, key=lambda issue: issue.severity.rank)


@dataclass(frozen=True)
class BiomechanicalMetrics:
    """Four 0-100 sub-scores underlying the overall grade."""
    elbow_alignment: int
    wrist_angle: int
    shoulder_square: int
    follow_through: int
    
    def values(self) -> Dict[str, int]:
        return {
            "elbow_alignment": self.elbow_alignment,
            "wrist_angle": self.wrist_angle,
            "shoulder_square": self.shoulder_square,
            "follow_through": self.follow_through,
        }
    
    def to_dict(self) -> Dict[str, Any]:
        return self.values()
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BiomechanicalMetrics":
        return cls(
            elbow_alignment=int(data["elbow_alignment"]),
            wrist_angle=int(data["wrist_angle"]),
            shoulder_square=int(data["shoulder_square"]),
            follow_through=int(data["follow_through"]),
        )


@dataclass(frozen=True)
class FormAnalysisResult:
    """Graded outcome of analysing one shot video."""
    overall_score: FormScore
    detected_issues: List[FormIssue]
    biomechanical_metrics: BiomechanicalMetrics
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score.value,
            "detected_issues": [issue.to_dict() for issue in self.detected_issues],
            "biomechanical_metrics": self.biomechanical_metrics.to_dict(),
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormAnalysisResult":
        return cls(
            overall_score=FormScore(data["overall_score"]),
            detected_issues=[FormIssue.from_dict(i) for i in data.get("detected_issues", [])],
            biomechanical_metrics=BiomechanicalMetrics.from_dict(data["biomechanical_metrics"]),
        )


def validate_analysis_result(result: FormAnalysisResult) -> Dict[str, Any]:
    """Check that every metric is within [0, 100]."""
    problems = []
    labels = {
        "elbow_alignment": "Elbow alignment",
        "wrist_angle": "Wrist angle",
        "shoulder_square": "Shoulder square",
        "follow_through": "Follow-through",
    }
    for key, value in result.biomechanical_metrics.values().items():
        if value < 0 or value > 100:
            problems.append(f"{labels[key]} out of range")
    
    return {"valid": not problems, "issues": problems}


# ═══════════════════════════════════════════════════════════════════════════════
# SESSIONS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class VideoMetadata:
    resolution: str = "unknown"
    frame_rate: float = 0.0
    lighting: LightingCondition = LightingCondition.GOOD
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolution": self.resolution,
            "frame_rate": self.frame_rate,
            "lighting": self.lighting.value,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoMetadata":
        return cls(
            resolution=data.get("resolution", "unknown"),
            frame_rate=float(data.get("frame_rate", 0.0)),
            lighting=LightingCondition(data.get("lighting", "good")),
        )


@dataclass
class ShootingSession:
    """One recorded and analysed shooting video."""
    id: str
    user_id: str
    timestamp: datetime
    form_score: FormScore
    detected_issues: List[FormIssue] = field(default_factory=list)
    duration: float = 0.0  # ms
    form_analysis: Optional[FormAnalysisResult] = None
    video_metadata: VideoMetadata = field(default_factory=VideoMetadata)
    sync_status: SyncStatus = SyncStatus.LOCAL
    analysis_tier: Optional[AnalysisTier] = None
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
            "form_score": self.form_score.value,
            "detected_issues": [issue.to_dict() for issue in self.detected_issues],
            "duration": self.duration,
            "form_analysis": self.form_analysis.to_dict() if self.form_analysis else None,
            "video_metadata": self.video_metadata.to_dict(),
            "sync_status": self.sync_status.value,
            "analysis_tier": self.analysis_tier.value if self.analysis_tier else None,
            "last_modified": self.last_modified.isoformat(),
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShootingSession":
        form_analysis = data.get("form_analysis")
        tier = data.get("analysis_tier")
        last_modified = data.get("last_modified")
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            timestamp=_parse_datetime(data["timestamp"]),
            form_score=FormScore(data["form_score"]),
            detected_issues=[FormIssue.from_dict(i) for i in data.get("detected_issues", [])],
            duration=float(data.get("duration", 0.0)),
            form_analysis=FormAnalysisResult.from_dict(form_analysis) if form_analysis else None,
            video_metadata=VideoMetadata.from_dict(data.get("video_metadata") or {}),
            sync_status=SyncStatus(data.get("sync_status", "local")),
            analysis_tier=AnalysisTier(tier) if tier else None,
            last_modified=_parse_datetime(last_modified) if last_modified else datetime.now(timezone.utc),
        )


def _parse_datetime(value: Any) -> datetime:
    # Firestore returns datetimes; the mock store keeps ISO strings
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
