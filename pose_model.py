"""
BlazePose model provider built on MediaPipe Pose.
- create_detector(model, config) builds a detector for a supported model family.
- BlazePoseDetector.estimate_poses() returns Pose objects with 33 pixel-space keypoints.
Note: mediapipe is imported lazily so the wrapper can be imported (and tested) without it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional

import cv2
import numpy as np

from logger import get_logger

logger = get_logger(__name__)


class SupportedModels(str, Enum):
    BLAZEPOSE = "BlazePose"


# MediaPipe Pose의 model_complexity 값에 대응하는 품질 단계
MODEL_TYPES = {"lite": 0, "full": 1, "heavy": 2}
SUPPORTED_RUNTIMES = ("mediapipe",)

# BlazePose 33개 랜드마크 이름 (MediaPipe 인덱스 순서)
KEYPOINT_NAMES = [
    'nose', 'left_eye_inner', 'left_eye', 'left_eye_outer',
    'right_eye_inner', 'right_eye', 'right_eye_outer',
    'left_ear', 'right_ear', 'mouth_left', 'mouth_right',
    'left_shoulder', 'right_shoulder', 'left_elbow', 'right_elbow',
    'left_wrist', 'right_wrist', 'left_pinky', 'right_pinky',
    'left_index', 'right_index', 'left_thumb', 'right_thumb',
    'left_hip', 'right_hip', 'left_knee', 'right_knee',
    'left_ankle', 'right_ankle', 'left_heel', 'right_heel',
    'left_foot_index', 'right_foot_index'
]


@dataclass(frozen=True)
class Keypoint:
    """
    A single 2D keypoint in pixel coordinates of the input frame.
    """

    name: str
    x: float
    y: float
    score: float  # visibility [0..1]
    z: Optional[float] = None


@dataclass
class Pose:
    """One detected body."""

    keypoints: List[Keypoint] = field(default_factory=list)
    keypoints_3d: Optional[List[Keypoint]] = None
    score: Optional[float] = None

    def get(self, name: str) -> Optional[Keypoint]:
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None


class BlazePoseDetector:
    """
    MediaPipe Pose(BlazePose) 래퍼 클래스.
    - estimate_poses: BGR 프레임에서 포즈를 추정하고 Pose 리스트를 반환합니다.
    - close: MediaPipe 그래프를 해제합니다.
    MediaPipe Pose 솔루션은 프레임당 최대 한 명만 추정합니다.
    """
    def __init__(self, model_type="full", min_detection_confidence=0.5, min_tracking_confidence=0.5):
        try:
            import mediapipe as mp
        except ImportError as e:
            raise RuntimeError(
                "MediaPipe is not installed. Install it with: pip install mediapipe"
            ) from e

        if model_type not in MODEL_TYPES:
            raise ValueError(f"Unknown BlazePose model type: {model_type!r}")

        self.model_type = model_type
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(static_image_mode=False,
                                      model_complexity=MODEL_TYPES[model_type],
                                      smooth_landmarks=True,
                                      min_detection_confidence=min_detection_confidence,
                                      min_tracking_confidence=min_tracking_confidence)

    def estimate_poses(self, image: np.ndarray, max_poses: int = 1, flip_horizontal: bool = False) -> List[Pose]:
        """
        입력 프레임에서 포즈를 추정합니다.
        - 입력: image (BGR ndarray), max_poses, flip_horizontal (x 좌표 좌우 반전)
        - 반환: Pose 리스트. 감지되지 않으면 빈 리스트.
        """
        if max_poses < 1:
            return []

        h, w = image.shape[:2]
        img_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)  # MediaPipe는 RGB 이미지를 사용합니다.
        results = self.pose.process(img_rgb)
        if not results.pose_landmarks:
            return []

        keypoints = []
        for name, lm in zip(KEYPOINT_NAMES, results.pose_landmarks.landmark):
            x = float(lm.x) * w
            if flip_horizontal:
                x = w - x
            keypoints.append(Keypoint(name=name, x=x, y=float(lm.y) * h,
                                      score=float(lm.visibility), z=float(lm.z)))

        keypoints_3d = None
        if results.pose_world_landmarks:
            keypoints_3d = [
                Keypoint(name=name, x=-float(lm.x) if flip_horizontal else float(lm.x),
                         y=float(lm.y), score=float(lm.visibility), z=float(lm.z))
                for name, lm in zip(KEYPOINT_NAMES, results.pose_world_landmarks.landmark)
            ]

        score = float(np.mean([kp.score for kp in keypoints])) if keypoints else None
        return [Pose(keypoints=keypoints, keypoints_3d=keypoints_3d, score=score)]

    def close(self) -> None:
        if self.pose is not None:
            self.pose.close()
            self.pose = None


def create_detector(model: Any, config: Optional[Mapping[str, Any]] = None) -> BlazePoseDetector:
    """
    모델 계열과 설정으로 포즈 검출기를 생성합니다.
    - model: SupportedModels 값 또는 "BlazePose"
    - config: runtime, model_type, min_detection_confidence, min_tracking_confidence
    """
    config = dict(config or {})
    SupportedModels(model)  # 지원하지 않는 모델이면 ValueError

    runtime = config.get("runtime", "mediapipe")
    if runtime not in SUPPORTED_RUNTIMES:
        raise ValueError(f"Unsupported runtime for BlazePose: {runtime!r}")

    logger.info("Loading BlazePose (runtime=%s, model_type=%s)", runtime, config.get("model_type", "full"))
    return BlazePoseDetector(
        model_type=config.get("model_type", "full"),
        min_detection_confidence=config.get("min_detection_confidence", 0.5),
        min_tracking_confidence=config.get("min_tracking_confidence", 0.5),
    )
