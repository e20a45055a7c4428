"""
Video source backed by cv2.VideoCapture.
- open(): request a live stream (webcam index or file path).
- play(): read frames in the background and keep the latest one in `frame`.
- ready_state / wait_loaded(): signal when decodable data is available.
"""
import asyncio
from typing import Callable, Optional, Union

import cv2
import numpy as np

from logger import get_logger

logger = get_logger(__name__)

HAVE_NOTHING = 0       # 아직 디코딩된 프레임이 없음
HAVE_CURRENT_DATA = 2  # 현재 프레임을 그릴 수 있음


class VideoSource:
    """
    카메라/영상 파일 래퍼 클래스.
    렌더 루프와 포즈 검출기가 같은 현재 프레임(frame)을 읽기 전용으로 공유합니다.
    """
    def __init__(
        self,
        device: Union[int, str] = 0,
        width: int = 640,
        height: int = 480,
        capture_factory: Callable[..., object] = cv2.VideoCapture,
    ):
        self.device = device
        self.width = width
        self.height = height
        self._capture_factory = capture_factory
        self.cap = None
        self._frame: Optional[np.ndarray] = None
        self._ready_state = HAVE_NOTHING
        self._loaded = asyncio.Event()
        self._reader: Optional[asyncio.Task] = None
        self._playing = False

    @property
    def ready_state(self) -> int:
        return self._ready_state

    @property
    def frame(self) -> Optional[np.ndarray]:
        """가장 최근에 디코딩된 BGR 프레임. 아직 없으면 None."""
        return self._frame

    def open(self) -> bool:
        """스트림을 엽니다. 카메라를 열 수 없으면 False를 반환합니다."""
        self.cap = self._capture_factory(self.device)
        if not self.cap.isOpened():
            logger.warning("Could not open video device %r", self.device)
            self.cap = None
            return False

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        logger.info("Opened video device %r", self.device)
        return True

    def push_frame(self, frame: np.ndarray) -> None:
        """현재 프레임을 교체하고, 첫 프레임이면 loaded 신호를 보냅니다."""
        self._frame = frame
        if self._ready_state == HAVE_NOTHING:
            self._ready_state = HAVE_CURRENT_DATA
            self._loaded.set()

    async def wait_loaded(self) -> None:
        """디코딩 가능한 프레임이 생길 때까지 기다립니다."""
        if self._ready_state != HAVE_NOTHING:
            return
        await self._loaded.wait()

    def play(self) -> Optional[asyncio.Task]:
        """백그라운드에서 프레임 읽기를 시작합니다. 스트림이 열려 있지 않으면 None."""
        if self.cap is None:
            return None
        if self._reader is not None and not self._reader.done():
            return self._reader
        self._playing = True
        self._reader = asyncio.get_running_loop().create_task(self._read_frames(), name="video-reader")
        return self._reader

    async def _read_frames(self) -> None:
        while self._playing and self.cap is not None:
            # cap.read()는 블로킹 호출이므로 작업 스레드에서 실행합니다.
            success, frame = await asyncio.to_thread(self.cap.read)
            if not success:
                logger.info("Video stream ended")
                break
            self.push_frame(frame)

    def release(self) -> None:
        """읽기를 멈추고 장치를 해제합니다. 읽는 중이면 현재 read()가 끝난 뒤 해제합니다."""
        self._playing = False
        if self._reader is not None and not self._reader.done():
            self._reader.add_done_callback(lambda _: self._release_capture())
        else:
            self._release_capture()

    def _release_capture(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None
