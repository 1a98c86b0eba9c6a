"""
SHOTCOACH Analysis Service - Pose Estimation Engine

MediaPipe PoseLandmarker wrapper that turns a shot video into a sequence
of 13-joint keypoint frames, plus the geometry helpers used by the
lightweight form analyzer.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import numpy as np

from core.config import settings
from .errors import InvalidVideoError, ModelLoadError, PoseDetectionError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# JOINTS AND FRAMES
# ═══════════════════════════════════════════════════════════════════════════════

class MajorJoint(Enum):
    """The 13 joints used for shot analysis (COCO keypoint indices)."""
    NOSE = 0
    LEFT_SHOULDER = 5
    RIGHT_SHOULDER = 6
    LEFT_ELBOW = 7
    RIGHT_ELBOW = 8
    LEFT_WRIST = 9
    RIGHT_WRIST = 10
    LEFT_HIP = 11
    RIGHT_HIP = 12
    LEFT_KNEE = 13
    RIGHT_KNEE = 14
    LEFT_ANKLE = 15
    RIGHT_ANKLE = 16


# MediaPipe's 33-landmark topology -> major joints
MEDIAPIPE_LANDMARK_INDEX: Dict[MajorJoint, int] = {
    MajorJoint.NOSE: 0,
    MajorJoint.LEFT_SHOULDER: 11,
    MajorJoint.RIGHT_SHOULDER: 12,
    MajorJoint.LEFT_ELBOW: 13,
    MajorJoint.RIGHT_ELBOW: 14,
    MajorJoint.LEFT_WRIST: 15,
    MajorJoint.RIGHT_WRIST: 16,
    MajorJoint.LEFT_HIP: 23,
    MajorJoint.RIGHT_HIP: 24,
    MajorJoint.LEFT_KNEE: 25,
    MajorJoint.RIGHT_KNEE: 26,
    MajorJoint.LEFT_ANKLE: 27,
    MajorJoint.RIGHT_ANKLE: 28,
}

CRITICAL_JOINTS = (
    MajorJoint.LEFT_SHOULDER,
    MajorJoint.RIGHT_SHOULDER,
    MajorJoint.LEFT_ELBOW,
    MajorJoint.RIGHT_ELBOW,
    MajorJoint.LEFT_WRIST,
    MajorJoint.RIGHT_WRIST,
)


@dataclass
class Keypoint:
    """Normalized image coordinates (y grows downward)."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


@dataclass
class KeypointFrame:
    keypoints: Dict[MajorJoint, Keypoint]
    timestamp: float  # ms
    confidence: float
    
    def get(self, joint: MajorJoint) -> Optional[Keypoint]:
        return self.keypoints.get(joint)


@dataclass
class VideoInfo:
    width: int
    height: int
    frame_rate: float
    frame_count: int
    
    @property
    def duration_ms(self) -> float:
        if self.frame_rate <= 0:
            return 0.0
        return self.frame_count / self.frame_rate * 1000
    
    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class PoseModelConfig:
    """Model catalogue entry for an ML tier."""
    name: str
    model_path: str


# ═══════════════════════════════════════════════════════════════════════════════
# GEOMETRY
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_joint_angle(point1: Keypoint, point2: Keypoint, point3: Keypoint) -> float:
    """
    Angle at point2 (degrees) between point2->point1 and point2->point3.
    
    Returns 0 when either vector has zero length.
    """
    v1 = np.array([point1.x - point2.x, point1.y - point2.y])
    v2 = np.array([point3.x - point2.x, point3.y - point2.y])
    
    mag1 = np.linalg.norm(v1)
    mag2 = np.linalg.norm(v2)
    if mag1 == 0 or mag2 == 0:
        return 0.0
    
    cos_angle = np.clip(np.dot(v1, v2) / (mag1 * mag2), -1.0, 1.0)
    return float(math.degrees(math.acos(cos_angle)))


def get_shooting_arm_keypoints(
    frame: KeypointFrame,
    left_handed: bool = False,
) -> Optional[Dict[str, Keypoint]]:
    """Shoulder/elbow/wrist of the shooting arm, or None if any is missing."""
    if left_handed:
        joints = (MajorJoint.LEFT_SHOULDER, MajorJoint.LEFT_ELBOW, MajorJoint.LEFT_WRIST)
    else:
        joints = (MajorJoint.RIGHT_SHOULDER, MajorJoint.RIGHT_ELBOW, MajorJoint.RIGHT_WRIST)
    
    shoulder, elbow, wrist = (frame.get(joint) for joint in joints)
    if shoulder is None or elbow is None or wrist is None:
        return None
    return {"shoulder": shoulder, "elbow": elbow, "wrist": wrist}


def validate_keypoint_quality(frame: KeypointFrame, min_confidence: float = 0.5) -> bool:
    """Frame is usable if confident enough and all arm joints are present."""
    if frame.confidence < min_confidence:
        return False
    return all(joint in frame.keypoints for joint in CRITICAL_JOINTS)


# ═══════════════════════════════════════════════════════════════════════════════
# VIDEO
# ═══════════════════════════════════════════════════════════════════════════════

def read_video_info(video_path: str) -> VideoInfo:
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise InvalidVideoError(f"Cannot open video: {video_path}")
    
    try:
        return VideoInfo(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            frame_rate=float(cap.get(cv2.CAP_PROP_FPS) or 0.0),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )
    finally:
        cap.release()


# ═══════════════════════════════════════════════════════════════════════════════
# POSE ESTIMATOR
# ═══════════════════════════════════════════════════════════════════════════════

class PoseEstimator:
    """
    Samples a video at `sample_fps` and runs MediaPipe PoseLandmarker on
    each sampled frame.
    
    MediaPipe is imported when the model is first loaded so the rest of the
    service runs on hosts without it.
    """
    
    def __init__(
        self,
        model_path: Optional[str] = None,
        sample_fps: float = None,
        min_confidence: float = None,
    ):
        self.model_path = model_path or settings.POSE_MODEL_PATH
        self.sample_fps = sample_fps or settings.POSE_SAMPLE_FPS
        self.min_confidence = min_confidence if min_confidence is not None else settings.POSE_MIN_CONFIDENCE
    
    def read_video_info(self, video_path: str) -> VideoInfo:
        return read_video_info(video_path)
    
    def _create_landmarker(self):
        if not Path(self.model_path).exists():
            raise ModelLoadError(f"Pose model not found at {self.model_path}")
        
        try:
            import mediapipe as mp
            
            options = mp.tasks.vision.PoseLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=str(self.model_path)),
                running_mode=mp.tasks.vision.RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=self.min_confidence,
                min_tracking_confidence=self.min_confidence,
            )
            return mp, mp.tasks.vision.PoseLandmarker.create_from_options(options)
        except Exception as e:
            raise ModelLoadError(f"Failed to load pose model: {e}") from e
    
    def extract_keypoints(self, video_path: str) -> List[KeypointFrame]:
        """
        Keypoint frames that pass the confidence check.
        
        Raises:
            ModelLoadError, InvalidVideoError, PoseDetectionError
        """
        mp, landmarker = self._create_landmarker()
        
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            landmarker.close()
            raise InvalidVideoError(f"Cannot open video: {video_path}")
        
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        step = max(1, int(round(fps / self.sample_fps)))
        frames: List[KeypointFrame] = []
        rejected = 0
        
        try:
            frame_num = 0
            while True:
                ret, image = cap.read()
                if not ret:
                    break
                
                if frame_num % step == 0:
                    timestamp_ms = int(frame_num * 1000 / fps)
                    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
                    mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
                    result = landmarker.detect_for_video(mp_image, timestamp_ms)
                    
                    if result.pose_landmarks:
                        frame = self._to_keypoint_frame(
                            result.pose_landmarks[0], timestamp_ms, self.min_confidence
                        )
                        if validate_keypoint_quality(frame, self.min_confidence):
                            frames.append(frame)
                        else:
                            rejected += 1
                
                frame_num += 1
        finally:
            cap.release()
            landmarker.close()
        
        logger.info(f"🦴 Extracted {len(frames)} keypoint frames ({rejected} below confidence)")
        
        if not frames:
            raise PoseDetectionError("No confident pose detected in video")
        return frames
    
    @staticmethod
    def _to_keypoint_frame(landmarks, timestamp_ms: float, min_visibility: float = 0.0) -> KeypointFrame:
        """Joints below `min_visibility` are left out of the frame."""
        keypoints = {}
        visibilities = []
        for joint, index in MEDIAPIPE_LANDMARK_INDEX.items():
            lm = landmarks[index]
            visibility = getattr(lm, "visibility", None)
            if visibility is None:
                visibility = 1.0
            visibilities.append(visibility)
            if visibility < min_visibility:
                continue
            keypoints[joint] = Keypoint(x=lm.x, y=lm.y, z=lm.z, visibility=visibility)
        
        confidence = float(np.mean(visibilities))
        return KeypointFrame(keypoints=keypoints, timestamp=timestamp_ms, confidence=confidence)
