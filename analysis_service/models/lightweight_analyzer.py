"""
SHOTCOACH Analysis Service - Lightweight Form Analyzer

Pose-based biomechanics: split the keypoint sequence into shooting
phases, score elbow/wrist/shoulder/follow-through/balance, grade the shot
and list the top form issues.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from core.config import settings
from .errors import InvalidVideoError, PoseDetectionError
from .pose_engine import (
    Keypoint,
    KeypointFrame,
    MajorJoint,
    PoseEstimator,
    VideoInfo,
    calculate_joint_angle,
    get_shooting_arm_keypoints,
)
from .types import (
    BiomechanicalMetrics,
    FormAnalysisResult,
    FormIssue,
    FormIssueType,
    FormScore,
    IssueSeverity,
    clamp_score,
    score_to_grade,
    sort_by_severity,
)

logger = logging.getLogger(__name__)

RELEASE_WINDOW = 2  # frames either side of the release frame
MAX_ISSUES = 3

SCORE_WEIGHTS = {
    "elbow_alignment": 0.25,
    "wrist_angle": 0.20,
    "shoulder_square": 0.20,
    "follow_through": 0.25,
    "body_balance": 0.10,
}


@dataclass
class ShootingPhases:
    preparation: List[KeypointFrame]
    release: List[KeypointFrame]
    follow_through: List[KeypointFrame]


@dataclass
class PoseBiomechanics:
    elbow_alignment: int
    wrist_angle: int
    shoulder_square: int
    follow_through: int
    release_height: float
    body_balance: int


# ═══════════════════════════════════════════════════════════════════════════════
# PHASES
# ═══════════════════════════════════════════════════════════════════════════════

def detect_shooting_phases(frames: List[KeypointFrame], left_handed: bool = False) -> ShootingPhases:
    """
    Release is the frame where the shooting wrist is highest on screen
    (smallest y). The +/-2 frame window around it is the release phase;
    boundary frames are shared with the neighbouring phases.
    """
    if not frames:
        raise PoseDetectionError("No keypoint frames to analyze")
    
    wrist_joint = MajorJoint.LEFT_WRIST if left_handed else MajorJoint.RIGHT_WRIST
    heights = [
        frame.get(wrist_joint).y if frame.get(wrist_joint) is not None else math.inf
        for frame in frames
    ]
    if all(h == math.inf for h in heights):
        raise PoseDetectionError("Shooting wrist not detected in any frame")
    
    release_idx = int(np.argmin(heights))
    prep_end = max(0, release_idx - RELEASE_WINDOW)
    release_end = min(len(frames) - 1, release_idx + RELEASE_WINDOW)
    
    phases = ShootingPhases(
        preparation=frames[: prep_end + 1],
        release=frames[prep_end: release_end + 1],
        follow_through=frames[release_end:],
    )
    logger.debug(
        f"Phases: prep={len(phases.preparation)}, release={len(phases.release)}, "
        f"follow={len(phases.follow_through)}"
    )
    return phases


# ═══════════════════════════════════════════════════════════════════════════════
# SUB-SCORES
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_elbow_alignment(shoulder: Keypoint, elbow: Keypoint, wrist: Keypoint) -> int:
    """Optimal elbow angle is 90 degrees; 3.33 points per degree off."""
    angle = calculate_joint_angle(shoulder, elbow, wrist)
    return clamp_score(100 - abs(angle - 90) * 3.33)


def calculate_wrist_angle(elbow: Keypoint, wrist: Keypoint) -> int:
    """Forearm deviation from vertical; 5 points per degree."""
    dx = abs(wrist.x - elbow.x)
    dy = abs(wrist.y - elbow.y)
    deviation = math.degrees(math.atan2(dx, dy))
    return clamp_score(100 - deviation * 5)


def calculate_shoulder_square(frame: KeypointFrame) -> int:
    """Shoulder line deviation from horizontal; 5 points per degree."""
    left = frame.get(MajorJoint.LEFT_SHOULDER)
    right = frame.get(MajorJoint.RIGHT_SHOULDER)
    if left is None or right is None:
        logger.warning("Shoulder keypoints not detected")
        return 50
    
    deviation = math.degrees(math.atan2(abs(right.y - left.y), abs(right.x - left.x)))
    return clamp_score(100 - deviation * 5)


def calculate_follow_through_quality(frames: List[KeypointFrame], left_handed: bool = False) -> int:
    """60% duration (5 frames = full marks), 40% wrist steadiness."""
    if not frames:
        return 0
    
    wrist_joint = MajorJoint.LEFT_WRIST if left_handed else MajorJoint.RIGHT_WRIST
    wrist_y = [frame.get(wrist_joint).y for frame in frames if frame.get(wrist_joint) is not None]
    if len(wrist_y) < 2:
        return 50
    
    variance = float(np.var(wrist_y))
    duration_score = min(100.0, len(frames) / 5 * 100)
    consistency_score = max(0.0, 100 - variance * 500)
    return clamp_score(duration_score * 0.6 + consistency_score * 0.4)


def calculate_body_balance(frame: KeypointFrame) -> int:
    """Level hips and a stance about 0.3 frame-widths wide."""
    left_hip = frame.get(MajorJoint.LEFT_HIP)
    right_hip = frame.get(MajorJoint.RIGHT_HIP)
    left_ankle = frame.get(MajorJoint.LEFT_ANKLE)
    right_ankle = frame.get(MajorJoint.RIGHT_ANKLE)
    if None in (left_hip, right_hip, left_ankle, right_ankle):
        return 50
    
    hip_score = max(0.0, 100 - abs(left_hip.y - right_hip.y) * 500)
    stance_width = abs(left_ankle.x - right_ankle.x)
    stance_score = max(0.0, 100 - abs(stance_width - 0.3) * 200)
    return clamp_score(hip_score * 0.5 + stance_score * 0.5)


def calculate_biomechanics_from_pose(phases: ShootingPhases, left_handed: bool = False) -> PoseBiomechanics:
    if not phases.release:
        raise PoseDetectionError("No release frame available")
    release_frame = phases.release[len(phases.release) // 2]
    
    arm = get_shooting_arm_keypoints(release_frame, left_handed)
    if arm is None:
        raise PoseDetectionError("Could not detect shooting arm keypoints")
    
    return PoseBiomechanics(
        elbow_alignment=calculate_elbow_alignment(arm["shoulder"], arm["elbow"], arm["wrist"]),
        wrist_angle=calculate_wrist_angle(arm["elbow"], arm["wrist"]),
        shoulder_square=calculate_shoulder_square(release_frame),
        follow_through=calculate_follow_through_quality(phases.follow_through, left_handed),
        release_height=1.0 - arm["wrist"].y,
        body_balance=calculate_body_balance(release_frame),
    )


def calculate_weighted_score(biomechanics: PoseBiomechanics) -> float:
    return sum(getattr(biomechanics, name) * weight for name, weight in SCORE_WEIGHTS.items())


def calculate_form_score(biomechanics: PoseBiomechanics) -> FormScore:
    return score_to_grade(calculate_weighted_score(biomechanics))


# ═══════════════════════════════════════════════════════════════════════════════
# ISSUES
# ═══════════════════════════════════════════════════════════════════════════════

def detect_form_issues_from_pose(biomechanics: PoseBiomechanics) -> List[FormIssue]:
    """Threshold each sub-score; most severe first, at most three."""
    issues = []
    
    if biomechanics.elbow_alignment < 60:
        issues.append(FormIssue(
            type=FormIssueType.ELBOW_FLARE,
            severity=IssueSeverity.MAJOR,
            description="Your elbow is significantly out of alignment. Focus on keeping it under the ball.",
            recommended_drills=[
                "Wall shooting drill - Practice form against a wall",
                "One-hand form shooting - Focus on elbow alignment",
                "Chair drill - Sit and practice shooting motion",
            ],
        ))
    elif biomechanics.elbow_alignment < 75:
        issues.append(FormIssue(
            type=FormIssueType.ELBOW_FLARE,
            severity=IssueSeverity.MODERATE,
            description="Your elbow alignment needs improvement. Keep it more vertical.",
            recommended_drills=[
                "One-hand form shooting",
                "Mirror practice - Watch your elbow position",
            ],
        ))
    
    if biomechanics.wrist_angle < 65:
        issues.append(FormIssue(
            type=FormIssueType.WRIST_ANGLE,
            severity=IssueSeverity.MODERATE,
            description="Your wrist position at release needs work. Aim for a straighter wrist with good snap.",
            recommended_drills=[
                "Wrist flick drill - Practice wrist snap motion",
                "Close-range shooting - Focus on wrist follow-through",
                "Lying down shooting - Isolate wrist motion",
            ],
        ))
    elif biomechanics.wrist_angle < 80:
        issues.append(FormIssue(
            type=FormIssueType.WRIST_ANGLE,
            severity=IssueSeverity.MINOR,
            description="Minor wrist angle adjustment needed for optimal release.",
            recommended_drills=["Wrist flick drill"],
        ))
    
    if biomechanics.shoulder_square < 70:
        issues.append(FormIssue(
            type=FormIssueType.STANCE,
            severity=IssueSeverity.MODERATE,
            description="Your shoulders are not square to the basket. Align your body properly.",
            recommended_drills=[
                "Stance and alignment drills",
                "Feet positioning practice",
                "Square-up drill before shooting",
            ],
        ))
    
    if biomechanics.follow_through < 60:
        issues.append(FormIssue(
            type=FormIssueType.FOLLOW_THROUGH,
            severity=IssueSeverity.MAJOR,
            description="Your follow-through is inconsistent or too short. Hold your form longer.",
            recommended_drills=[
                "Freeze drill - Hold follow-through for 2 seconds",
                "Slow-motion shooting - Practice complete follow-through",
                "Goose-neck finish - Focus on wrist position",
            ],
        ))
    elif biomechanics.follow_through < 75:
        issues.append(FormIssue(
            type=FormIssueType.FOLLOW_THROUGH,
            severity=IssueSeverity.MODERATE,
            description="Extend your follow-through for better consistency.",
            recommended_drills=["Freeze drill", "Count to 2 after release"],
        ))
    
    return sort_by_severity(issues)[:MAX_ISSUES]


# ═══════════════════════════════════════════════════════════════════════════════
# VIDEO REQUIREMENTS
# ═══════════════════════════════════════════════════════════════════════════════

def check_video_requirements(info: VideoInfo) -> List[str]:
    """Reasons the video is unsuitable for pose analysis (empty if fine)."""
    problems = []
    if info.width < settings.ML_MIN_WIDTH or info.height < settings.ML_MIN_HEIGHT:
        problems.append(
            f"resolution {info.resolution} below {settings.ML_MIN_WIDTH}x{settings.ML_MIN_HEIGHT}"
        )
    if info.frame_rate < settings.ML_MIN_FPS:
        problems.append(f"frame rate {info.frame_rate:.1f} below {settings.ML_MIN_FPS}")
    if not settings.ML_MIN_DURATION_MS <= info.duration_ms <= settings.ML_MAX_DURATION_MS:
        problems.append(
            f"duration {info.duration_ms:.0f}ms outside "
            f"{settings.ML_MIN_DURATION_MS:.0f}-{settings.ML_MAX_DURATION_MS:.0f}ms"
        )
    return problems


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYZER
# ═══════════════════════════════════════════════════════════════════════════════

class LightweightFormAnalyzer:
    """
    Pose-based analysis strategy.
    
    Raises on model load failure, unusable video, empty keypoints or a
    missing shooting arm; degrading is the router's job.
    """
    
    def __init__(self, estimator: Optional[PoseEstimator] = None, left_handed: bool = False):
        self.estimator = estimator or PoseEstimator()
        self.left_handed = left_handed
    
    def analyze(self, video_ref: str) -> FormAnalysisResult:
        start_time = time.time()
        
        problems = check_video_requirements(self.estimator.read_video_info(video_ref))
        if problems:
            raise InvalidVideoError(f"Video unsuitable for pose analysis: {'; '.join(problems)}")
        
        frames = self.estimator.extract_keypoints(video_ref)
        return self.analyze_keypoints(frames, start_time)
    
    def analyze_keypoints(self, frames: List[KeypointFrame], start_time: float = None) -> FormAnalysisResult:
        start_time = start_time or time.time()
        
        phases = detect_shooting_phases(frames, self.left_handed)
        biomechanics = calculate_biomechanics_from_pose(phases, self.left_handed)
        overall = calculate_form_score(biomechanics)
        
        result = FormAnalysisResult(
            overall_score=overall,
            detected_issues=detect_form_issues_from_pose(biomechanics),
            biomechanical_metrics=BiomechanicalMetrics(
                elbow_alignment=biomechanics.elbow_alignment,
                wrist_angle=biomechanics.wrist_angle,
                shoulder_square=biomechanics.shoulder_square,
                follow_through=biomechanics.follow_through,
            ),
        )
        
        processing_time = (time.time() - start_time) * 1000
        logger.info(
            f"🏀 Lightweight analysis: grade={overall.value}, "
            f"issues={len(result.detected_issues)} ({processing_time:.0f}ms)"
        )
        return result
