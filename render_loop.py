"""
Render loop for the webcam sketch.
Draws the current video frame and the last received poses on every tick,
independently of how fast the detector produces results.
"""
import threading
from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from drawing import draw_keypoints, draw_text_multiline
from frame_loop import next_frame
from logger import get_logger

logger = get_logger(__name__)

CANVAS_SIZE = (640, 480)  # (width, height)
WINDOW_NAME = "BlazePose Webcam"


class PoseCell:
    """
    마지막으로 받은 포즈 결과를 보관하는 셀.
    - set: 검출 결과 핸들러만 호출하며 값을 통째로 교체합니다.
    - snapshot: 렌더 루프가 읽는 불변 튜플.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._poses: Tuple = ()

    def set(self, poses: Sequence) -> None:
        with self._lock:
            self._poses = tuple(poses)

    def snapshot(self) -> Tuple:
        with self._lock:
            return self._poses


class RenderLoop:
    """
    매 틱마다 비디오 프레임을 고정 해상도 캔버스에 그리고, 그 위에 키포인트를 표시합니다.
    검출을 기다리지 않으며, 아직 결과가 없으면 프레임만 그립니다.
    'q' 키를 누르거나 stop()을 호출하면 종료됩니다.
    """
    def __init__(
        self,
        video,
        poses: PoseCell,
        size: Tuple[int, int] = CANVAS_SIZE,
        window_name: str = WINDOW_NAME,
        show: Optional[Callable[[np.ndarray], None]] = None,
        frame_scheduler: Callable = next_frame,
    ):
        self.video = video
        self.poses = poses
        self.size = size
        self.window_name = window_name
        self.status_lines: List[Tuple[str, Tuple[int, int, int]]] = []
        self.frames = 0
        self.last_drawn = 0
        self._show = show or self._show_window
        self._frame_scheduler = frame_scheduler
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def tick(self) -> np.ndarray:
        """한 프레임을 그려 표시하고, 그린 캔버스를 반환합니다."""
        width, height = self.size
        frame = self.video.frame if self.video is not None else None

        if frame is None:
            canvas = np.zeros((height, width, 3), dtype=np.uint8)
            scale = (1.0, 1.0)
        else:
            frame_h, frame_w = frame.shape[:2]
            canvas = cv2.resize(frame, (width, height))
            scale = (width / frame_w, height / frame_h)

        self.last_drawn = draw_keypoints(canvas, self.poses.snapshot(), scale=scale)
        if self.status_lines:
            draw_text_multiline(canvas, self.status_lines, org=(10, 10))

        self.frames += 1
        self._show(canvas)
        return canvas

    def _show_window(self, canvas: np.ndarray) -> None:
        cv2.imshow(self.window_name, canvas)
        if cv2.waitKey(1) & 0xFF == ord('q'):
            self.stop()

    async def run(self) -> None:
        self._running = True
        logger.debug("Render loop started")
        while self._running:
            self.tick()
            await self._frame_scheduler()
        logger.debug("Render loop stopped after %d frames", self.frames)

    def stop(self) -> None:
        self._running = False
