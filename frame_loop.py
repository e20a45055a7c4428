"""
Per-frame scheduling for detection and rendering.
- next_frame(): wait until the next renderable frame (one frame interval).
- FrameLoop: produce -> wait for next frame -> produce ... until stop().
"""
import asyncio
from typing import Awaitable, Callable, Optional

from logger import get_logger

logger = get_logger(__name__)

DEFAULT_FPS = 60  # 화면 갱신 주기 기준 (60Hz)


async def next_frame(fps: float = DEFAULT_FPS) -> None:
    """다음 프레임까지 한 프레임 간격만큼 양보합니다."""
    await asyncio.sleep(1.0 / fps)


class FrameLoop:
    """
    명시적으로 중지할 수 있는 프레임 루프.
    - produce: 한 번의 작업(예: 포즈 추정 후 이벤트 발행)을 수행하는 코루틴 함수
    - wait_next_tick: 다음 틱까지 대기하는 코루틴 함수
    루프는 produce를 먼저 실행하고, 이후 틱마다 produce를 다시 실행합니다.
    한 인스턴스 안에서 produce 호출은 항상 순차적입니다.
    """
    def __init__(
        self,
        produce: Callable[[], Awaitable[object]],
        wait_next_tick: Callable[[], Awaitable[None]] = next_frame,
        name: str = "frame-loop",
    ):
        self._produce = produce
        self._wait_next_tick = wait_next_tick
        self._name = name
        self._stopped = False
        self._task: Optional[asyncio.Task] = None
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "FrameLoop":
        self._stopped = False
        if self.running:
            return self
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)
        return self

    def stop(self) -> None:
        """현재 진행 중인 produce가 끝나면 루프를 멈춥니다."""
        self._stopped = True

    async def wait(self) -> None:
        """루프가 끝날 때까지 기다립니다. produce에서 난 오류는 여기서 다시 발생합니다."""
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        try:
            while not self._stopped:
                await self._produce()
                self.iterations += 1
                if self._stopped:
                    break
                await self._wait_next_tick()
        except Exception:
            logger.exception("%s stopped on error after %d iterations", self._name, self.iterations)
            raise
        logger.debug("%s stopped after %d iterations", self._name, self.iterations)
