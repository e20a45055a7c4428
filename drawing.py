"""
Canvas drawing helpers for the webcam sketch.
- draw_keypoints: circle outline per keypoint above the confidence threshold.
- draw_text_multiline: status text lines.
"""
from typing import Iterable, List, Tuple

import cv2
import numpy as np

from logger import get_logger

logger = get_logger(__name__)

KEYPOINT_THRESHOLD = 0.2  # 이 값보다 큰 신뢰도의 키포인트만 그립니다.
KEYPOINT_RADIUS = 10
KEYPOINT_COLOR = (0, 0, 0)  # BGR


def draw_keypoints(
    canvas: np.ndarray,
    poses: Iterable,
    threshold: float = KEYPOINT_THRESHOLD,
    radius: int = KEYPOINT_RADIUS,
    scale: Tuple[float, float] = (1.0, 1.0),
    color: Tuple[int, int, int] = KEYPOINT_COLOR,
) -> int:
    """
    감지된 모든 포즈의 키포인트 중 score > threshold 인 것만 원(테두리)으로 그립니다.
    - scale: 원본 프레임 좌표를 캔버스 좌표로 바꾸는 (sx, sy) 배율
    - 한 포즈를 그리다 오류가 나면 기록만 하고 다음 포즈로 넘어갑니다.
    - 반환: 그린 키포인트 수
    """
    sx, sy = scale
    drawn = 0
    for pose in poses:
        try:
            for keypoint in pose.keypoints:
                if keypoint.score > threshold:
                    center = (int(round(keypoint.x * sx)), int(round(keypoint.y * sy)))
                    cv2.circle(canvas, center, radius, color, 1)
                    drawn += 1
        except Exception:
            logger.exception("Failed to draw pose keypoints")
    return drawn


def draw_text_multiline(
    img: np.ndarray,
    lines: List[Tuple[str, Tuple[int, int, int]]],
    org: Tuple[int, int] = (10, 10),
    font_scale: float = 0.6,
    line_gap: int = 6,
) -> None:
    """
    프레임에 여러 줄의 상태 텍스트를 그립니다.
    lines의 각 항목은 (text, bgr_color) 형식이며, org는 첫 줄의 왼쪽 위 좌표입니다.
    """
    x, y = org
    for text, bgr in lines:
        (_, h), baseline = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 2)
        y += h
        cv2.putText(img, text, (x, y), cv2.FONT_HERSHEY_SIMPLEX, font_scale, bgr, 2)
        y += baseline + line_gap
