"""
SHOTCOACH Analysis Service - Basic Form Analyzer

Rule-based analysis that needs no ML runtime. A motion extractor turns
the video into a shot trajectory and body positioning estimate; fixed
penalty rules grade the shot and linear falloffs give the metrics.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .errors import InvalidVideoError
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

# Known-optimal targets
OPTIMAL_RELEASE_ANGLE = 48.0
OPTIMAL_ELBOW_ANGLE = 90.0
OPTIMAL_ARC_HEIGHT = 0.75
OPTIMAL_STANCE_WIDTH = 0.5
OPTIMAL_FOLLOW_THROUGH_MS = 350.0


# ═══════════════════════════════════════════════════════════════════════════════
# MEASUREMENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ShotTrajectory:
    release_angle: float  # degrees from horizontal
    release_height: float  # normalized 0-1
    arc_height: float  # normalized 0-1
    release_speed: float  # normalized 0-1
    follow_through_duration: float  # ms


@dataclass
class BodyPositioning:
    shoulder_alignment: float  # degrees off square (0 = square)
    elbow_angle: float  # degrees
    wrist_angle: float  # degrees from straight
    stance_width: float  # normalized 0-1
    knee_flexion: float  # degrees


@dataclass
class ShotTiming:
    total_duration: float  # ms
    preparation_phase: float
    release_phase: float
    follow_through_phase: float
    
    @classmethod
    def from_total(cls, total_duration: float) -> "ShotTiming":
        return cls(
            total_duration=total_duration,
            preparation_phase=total_duration * 0.4,
            release_phase=total_duration * 0.2,
            follow_through_phase=total_duration * 0.4,
        )


@dataclass
class MotionAnalysis:
    trajectory: ShotTrajectory
    positioning: BodyPositioning
    timing: ShotTiming


# ═══════════════════════════════════════════════════════════════════════════════
# MOTION EXTRACTOR (OpenCV frame differencing)
# ═══════════════════════════════════════════════════════════════════════════════

class VideoMotionExtractor:
    """
    Coarse shot measurements from frame differencing.
    
    The release is the frame of peak motion energy; the motion centroid
    after it approximates the ball/arm path and the motion mask before it
    approximates the body silhouette.
    """
    
    def __init__(self, frame_size: int = 96, motion_threshold: float = 25.0, max_frames: int = 300):
        self.frame_size = frame_size
        self.motion_threshold = motion_threshold
        self.max_frames = max_frames
    
    def _read_frames(self, video_path: str) -> Tuple[List[np.ndarray], float]:
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            raise InvalidVideoError(f"Cannot open video: {video_path}")
        
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        frames = []
        try:
            while len(frames) < self.max_frames:
                ret, frame = cap.read()
                if not ret:
                    break
                gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if len(frame.shape) == 3 else frame
                frames.append(cv2.resize(gray, (self.frame_size, self.frame_size)).astype(float))
        finally:
            cap.release()
        
        return frames, fps
    
    def analyze(self, video_path: str) -> MotionAnalysis:
        frames, fps = self._read_frames(video_path)
        if len(frames) < 3:
            raise InvalidVideoError(f"Not enough frames in video: {len(frames)}")
        
        masks = [np.abs(curr - prev) > self.motion_threshold for prev, curr in zip(frames, frames[1:])]
        energy = np.array([mask.mean() for mask in masks])
        if energy.max() <= 0:
            raise InvalidVideoError("No motion detected in video")
        
        centroids = [self._centroid(mask) for mask in masks]
        release_idx = int(np.argmax(energy))
        
        trajectory = self._trajectory(centroids, energy, release_idx, fps)
        positioning = self._positioning(masks, centroids, release_idx)
        timing = ShotTiming.from_total(len(frames) / fps * 1000)
        
        logger.debug(
            f"Motion: release_frame={release_idx}, angle={trajectory.release_angle:.1f}, "
            f"follow={trajectory.follow_through_duration:.0f}ms"
        )
        return MotionAnalysis(trajectory=trajectory, positioning=positioning, timing=timing)
    
    @staticmethod
    def _centroid(mask: np.ndarray) -> Optional[Tuple[float, float]]:
        ys, xs = np.nonzero(mask)
        if len(xs) == 0:
            return None
        h, w = mask.shape
        return float(xs.mean() / w), float(ys.mean() / h)
    
    def _trajectory(self, centroids, energy, release_idx: int, fps: float) -> ShotTrajectory:
        release_point = centroids[release_idx] or (0.5, 0.5)
        after = [c for c in centroids[release_idx + 1: release_idx + 4] if c is not None]
        
        if after:
            dx = abs(after[-1][0] - release_point[0])
            rise = release_point[1] - after[-1][1]
            release_angle = math.degrees(math.atan2(max(rise, 0.0), dx)) if (dx or rise > 0) else OPTIMAL_RELEASE_ANGLE
            speed = math.hypot(dx, rise) * fps / len(after)
        else:
            release_angle = OPTIMAL_RELEASE_ANGLE
            speed = 0.0
        
        post_release = [c[1] for c in centroids[release_idx:] if c is not None]
        arc_top = min(post_release) if post_release else release_point[1]
        
        # Follow-through lasts until motion settles below 30% of the peak
        peak = energy[release_idx]
        settle = release_idx
        while settle + 1 < len(energy) and energy[settle + 1] >= peak * 0.3:
            settle += 1
        
        return ShotTrajectory(
            release_angle=release_angle,
            release_height=1.0 - release_point[1],
            arc_height=1.0 - arc_top,
            release_speed=float(min(1.0, speed)),
            follow_through_duration=(settle - release_idx + 1) * 1000 / fps,
        )
    
    def _positioning(self, masks, centroids, release_idx: int) -> BodyPositioning:
        silhouette = np.any(np.stack(masks[: release_idx + 1]), axis=0)
        ys, xs = np.nonzero(silhouette)
        h, w = silhouette.shape
        
        top, bottom = ys.min(), ys.max()
        body_height = max(1, bottom - top)
        
        # Shoulders: tilt of the upper third's principal axis
        upper = silhouette.copy()
        upper[top + body_height // 3:, :] = False
        shoulder_alignment = self._principal_tilt(upper)
        
        # Stance: horizontal extent of the lowest fifth relative to body height
        feet_cols = np.nonzero(silhouette[bottom - max(1, body_height // 5): bottom + 1, :].any(axis=0))[0]
        stance_width = (feet_cols.max() - feet_cols.min()) / body_height if len(feet_cols) else OPTIMAL_STANCE_WIDTH
        
        # Arm path before release vs after gives the elbow set angle
        before = [c for c in centroids[max(0, release_idx - 3): release_idx] if c is not None]
        after = [c for c in centroids[release_idx + 1: release_idx + 4] if c is not None]
        elbow_angle = OPTIMAL_ELBOW_ANGLE
        if before and after and centroids[release_idx] is not None:
            pivot = centroids[release_idx]
            elbow_angle = self._angle_at(before[0], pivot, after[-1])
        
        # Wrist: sideways drift of the motion during follow-through
        follow = [c for c in centroids[release_idx: release_idx + 6] if c is not None]
        wrist_angle = 0.0
        if len(follow) >= 2:
            dx = follow[-1][0] - follow[0][0]
            dy = abs(follow[-1][1] - follow[0][1]) or 1e-8
            wrist_angle = math.degrees(math.atan2(dx, dy))
        
        # Knees: dip of the lower-body motion before the release
        lower_rows = ys[ys > top + body_height * 2 // 3]
        dip = (lower_rows.max() - lower_rows.min()) / body_height if len(lower_rows) else 0.0
        knee_flexion = 180.0 - min(90.0, dip * 180.0)
        
        return BodyPositioning(
            shoulder_alignment=shoulder_alignment,
            elbow_angle=elbow_angle,
            wrist_angle=wrist_angle,
            stance_width=float(min(1.0, stance_width)),
            knee_flexion=knee_flexion,
        )
    
    @staticmethod
    def _principal_tilt(mask: np.ndarray) -> float:
        moments = cv2.moments(mask.astype(np.uint8))
        if moments["m00"] == 0:
            return 0.0
        mu20 = moments["mu20"] / moments["m00"]
        mu02 = moments["mu02"] / moments["m00"]
        mu11 = moments["mu11"] / moments["m00"]
        # Axis orientation from horizontal, folded into [-90, 90]
        return math.degrees(0.5 * math.atan2(2 * mu11, mu20 - mu02))
    
    @staticmethod
    def _angle_at(a, b, c) -> float:
        v1 = np.array(a) - np.array(b)
        v2 = np.array(c) - np.array(b)
        cos_angle = np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2) + 1e-8)
        return float(np.degrees(np.arccos(np.clip(cos_angle, -1.0, 1.0))))


# ═══════════════════════════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_rule_based_score(motion: MotionAnalysis) -> int:
    """Start at 100 and subtract a fixed two-level penalty per measurement."""
    score = 100
    
    release_diff = abs(motion.trajectory.release_angle - OPTIMAL_RELEASE_ANGLE)
    if release_diff > 10:
        score -= 20
    elif release_diff > 5:
        score -= 10
    
    elbow_diff = abs(motion.positioning.elbow_angle - OPTIMAL_ELBOW_ANGLE)
    if elbow_diff > 15:
        score -= 20
    elif elbow_diff > 10:
        score -= 10
    
    shoulder_diff = abs(motion.positioning.shoulder_alignment)
    if shoulder_diff > 15:
        score -= 15
    elif shoulder_diff > 10:
        score -= 8
    
    follow = motion.trajectory.follow_through_duration
    if follow < 200:
        score -= 15
    elif follow < 250:
        score -= 8
    
    arc_diff = abs(motion.trajectory.arc_height - OPTIMAL_ARC_HEIGHT)
    if arc_diff > 0.15:
        score -= 10
    elif arc_diff > 0.1:
        score -= 5
    
    return score


def apply_rule_based_scoring(motion: MotionAnalysis) -> FormScore:
    return score_to_grade(calculate_rule_based_score(motion))


def detect_form_issues(motion: MotionAnalysis) -> List[FormIssue]:
    issues = []
    positioning = motion.positioning
    
    elbow_diff = abs(positioning.elbow_angle - OPTIMAL_ELBOW_ANGLE)
    if elbow_diff > 15:
        issues.append(FormIssue(
            type=FormIssueType.ELBOW_FLARE,
            severity=IssueSeverity.MAJOR,
            description="Your elbow is flaring out too much. Keep it aligned under the ball.",
            recommended_drills=[
                "Wall shooting drill - Practice form against a wall",
                "One-hand form shooting - Focus on elbow alignment",
            ],
        ))
    elif elbow_diff > 10:
        issues.append(FormIssue(
            type=FormIssueType.ELBOW_FLARE,
            severity=IssueSeverity.MODERATE,
            description="Your elbow alignment could be improved. Try to keep it more vertical.",
            recommended_drills=["One-hand form shooting"],
        ))
    
    if abs(positioning.wrist_angle) > 10:
        issues.append(FormIssue(
            type=FormIssueType.WRIST_ANGLE,
            severity=IssueSeverity.MODERATE,
            description="Your wrist angle at release needs adjustment. Aim for a straight wrist.",
            recommended_drills=[
                "Wrist flick drill - Practice wrist snap motion",
                "Close-range shooting - Focus on wrist follow-through",
            ],
        ))
    
    if abs(positioning.stance_width - OPTIMAL_STANCE_WIDTH) > 0.2:
        issues.append(FormIssue(
            type=FormIssueType.STANCE,
            severity=IssueSeverity.MINOR,
            description="Your stance width could be better. Feet should be shoulder-width apart.",
            recommended_drills=["Balance and stance drills"],
        ))
    
    follow = motion.trajectory.follow_through_duration
    if follow < 200:
        issues.append(FormIssue(
            type=FormIssueType.FOLLOW_THROUGH,
            severity=IssueSeverity.MAJOR,
            description="Your follow-through is too short. Hold your form longer after release.",
            recommended_drills=[
                "Freeze drill - Hold follow-through position for 2 seconds",
                "Slow-motion shooting - Practice complete follow-through",
            ],
        ))
    elif follow < 250:
        issues.append(FormIssue(
            type=FormIssueType.FOLLOW_THROUGH,
            severity=IssueSeverity.MODERATE,
            description="Extend your follow-through slightly longer for better consistency.",
            recommended_drills=["Freeze drill"],
        ))
    
    return sort_by_severity(issues)


def calculate_biomechanical_metrics(motion: MotionAnalysis) -> BiomechanicalMetrics:
    """Continuous linear falloff per degree / ms, clamped to [0, 100]."""
    positioning = motion.positioning
    return BiomechanicalMetrics(
        elbow_alignment=clamp_score(100 - abs(positioning.elbow_angle - OPTIMAL_ELBOW_ANGLE) * 5),
        wrist_angle=clamp_score(100 - abs(positioning.wrist_angle) * 6),
        shoulder_square=clamp_score(100 - abs(positioning.shoulder_alignment) * 4),
        follow_through=clamp_score(
            100 - abs(motion.trajectory.follow_through_duration - OPTIMAL_FOLLOW_THROUGH_MS) * 0.3
        ),
    )


def generate_feedback_messages(score: FormScore, issues: List[FormIssue]) -> List[str]:
    """Headline for the grade plus the two most severe issue descriptions."""
    headlines = {
        FormScore.A: "Excellent form! Keep up the great work.",
        FormScore.B: "Good form with room for minor improvements.",
        FormScore.C: "Decent form, but focus on the issues below to improve.",
        FormScore.D: "Your form needs work. Focus on fundamentals.",
        FormScore.F: "Significant form issues detected. Practice the recommended drills.",
    }
    return [headlines[score]] + [issue.description for issue in sort_by_severity(issues)[:2]]


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYZER
# ═══════════════════════════════════════════════════════════════════════════════

class BasicFormAnalyzer:
    """Rule-based analysis strategy."""
    
    def __init__(self, extractor: Optional[VideoMotionExtractor] = None):
        self.extractor = extractor or VideoMotionExtractor()
    
    def analyze(self, video_ref: str) -> FormAnalysisResult:
        start_time = time.time()
        
        motion = self.extractor.analyze(video_ref)
        return self.analyze_motion(motion, start_time)
    
    def analyze_motion(self, motion: MotionAnalysis, start_time: float = None) -> FormAnalysisResult:
        start_time = start_time or time.time()
        
        overall = apply_rule_based_scoring(motion)
        issues = detect_form_issues(motion)
        result = FormAnalysisResult(
            overall_score=overall,
            detected_issues=issues,
            biomechanical_metrics=calculate_biomechanical_metrics(motion),
        )
        
        for message in generate_feedback_messages(overall, issues):
            logger.debug(f"Feedback: {message}")
        
        processing_time = (time.time() - start_time) * 1000
        logger.info(f"🏀 Basic analysis: grade={overall.value}, issues={len(issues)} ({processing_time:.0f}ms)")
        return result
