"""
Pose detection wrapper around BlazePose (MediaPipe Pose).
- pose_detector(...) accepts a video source, options, detection type and callback in flexible positions.
- The model is loaded asynchronously; with a bound video source a per-frame detection loop starts
  automatically and every result is published on the "pose" event.
Note: must be constructed inside a running asyncio event loop.
"""
import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, List, NamedTuple, Optional

import cv2
import numpy as np
from PIL import Image

from frame_loop import FrameLoop, next_frame
from logger import get_logger
from pose_events import EventEmitter
from pose_model import Pose, SupportedModels, create_detector
from video_source import HAVE_NOTHING, VideoSource

logger = get_logger(__name__)

# 고정된 모델 계열과 품질 단계
MODEL_FAMILY = SupportedModels.BLAZEPOSE
MODEL_CONFIG = {"runtime": "mediapipe", "model_type": "heavy"}

# single / multiple 모두 한 명만 요청합니다 (multiple 모드에서는 경고를 남김).
MAX_POSES = 1


class DetectionMode(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


DEFAULT_DETECTION_TYPE = DetectionMode.SINGLE

# 기존 camelCase 옵션 이름 호환
_OPTION_ALIASES = {
    "inputResolution": "input_resolution",
    "outputStride": "output_stride",
    "flipHorizontal": "flip_horizontal",
    "minConfidence": "min_confidence",
    "maxPoseDetections": "max_pose_detections",
    "scoreThreshold": "score_threshold",
    "nmsRadius": "nms_radius",
    "detectionType": "detection_type",
    "quantBytes": "quant_bytes",
    "modelUrl": "model_url",
}


@dataclass
class DetectorOptions:
    """
    검출기 옵션. 값이 주어지지 않으면 아래 기본값을 사용합니다.
    실제 모델 생성에는 min_confidence, flip_horizontal, detection_type만 반영됩니다.
    """
    architecture: str = "MobileNetV1"
    input_resolution: int = 257
    output_stride: int = 16
    flip_horizontal: bool = False
    min_confidence: float = 0.5
    max_pose_detections: int = 5
    score_threshold: float = 0.5
    nms_radius: float = 20
    detection_type: Optional[str] = None
    quant_bytes: int = 2
    model_url: Optional[str] = None

    @classmethod
    def from_mapping(cls, mapping: Mapping) -> "DetectorOptions":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in mapping.items():
            name = _OPTION_ALIASES.get(key, key)
            if name in known:
                values[name] = value
            else:
                logger.debug("Ignoring unknown detector option %r", key)
        return cls(**values)


def _is_options(value) -> bool:
    return isinstance(value, (Mapping, DetectorOptions))


def _as_options(value) -> DetectorOptions:
    if isinstance(value, DetectorOptions):
        return value
    return DetectorOptions.from_mapping(value)


class DetectorArguments(NamedTuple):
    video: Optional[VideoSource]
    options: DetectorOptions
    detection_type: Optional[str]
    callback: Optional[Callable]


def resolve_arguments(video_or_options_or_callback=None, options_or_callback=None, callback=None) -> DetectorArguments:
    """
    위치 인자의 형태를 보고 (video, options, detection_type, callback)으로 정리합니다.
    - 첫 번째 인자: VideoSource -> video, .elt가 VideoSource인 객체 -> video,
      매핑/DetectorOptions -> options, 호출 가능 -> callback
    - 두 번째 인자: 매핑/DetectorOptions -> options, 문자열 -> detection_type, 호출 가능 -> callback
    - 세 번째 인자: 기본 callback
    """
    video = None
    options = DetectorOptions()
    detection_type = None

    first = video_or_options_or_callback
    if isinstance(first, VideoSource):
        video = first
    elif isinstance(getattr(first, "elt", None), VideoSource):
        video = first.elt  # 다른 객체로 감싼 비디오
    elif _is_options(first):
        options = _as_options(first)
    elif callable(first):
        callback = first

    second = options_or_callback
    if _is_options(second):
        options = _as_options(second)
    elif isinstance(second, str):
        detection_type = second
    elif callable(second):
        callback = second

    return DetectorArguments(video, options, detection_type, callback)


def _unwrap_input(value) -> Optional[np.ndarray]:
    if value is None:
        return None
    if isinstance(value, np.ndarray):
        return value
    if isinstance(value, Image.Image):
        return cv2.cvtColor(np.asarray(value.convert("RGB")), cv2.COLOR_RGB2BGR)
    if isinstance(value, VideoSource):
        return value.frame
    elt = getattr(value, "elt", None)
    if isinstance(elt, (np.ndarray, Image.Image, VideoSource)):
        return _unwrap_input(elt)
    canvas = getattr(value, "canvas", None)
    if isinstance(canvas, np.ndarray):
        return canvas
    return None


class PoseDetector:
    """
    BlazePose 포즈 검출기 래퍼 클래스.
    - ready: 모델(과 비디오)이 준비되면 검출기 자신으로 완료되는 Task. `await detector`도 같습니다.
    - detect_single / detect_multiple: 비디오가 연결되어 있으면 프레임 루프를 시작하고,
      없으면 한 번만 추정해 결과를 반환합니다.
    - on("pose", listener): 추정 결과(Pose 리스트)를 받을 리스너를 등록합니다.
    """
    def __init__(
        self,
        video: Optional[VideoSource] = None,
        options=None,
        detection_type: Optional[str] = None,
        callback: Optional[Callable] = None,
        *,
        model_provider: Callable[..., Any] = create_detector,
        frame_scheduler: Callable[[], Any] = next_frame,
    ):
        self.video = video
        self.options = _as_options(options) if options is not None else DetectorOptions()
        self.detection_type = DetectionMode(
            detection_type or self.options.detection_type or DEFAULT_DETECTION_TYPE
        )
        self.net = None
        self.events = EventEmitter()
        self._model_provider = model_provider
        self._frame_scheduler = frame_scheduler
        self._loop: Optional[FrameLoop] = None
        self._stopped = False
        self._warned_multiple = False

        self.ready = asyncio.get_running_loop().create_task(
            self._load_and_notify(callback), name="pose-detector-load"
        )

    def __await__(self):
        return self.ready.__await__()

    async def _load_and_notify(self, callback):
        try:
            await self.load()
        except Exception:
            logger.exception("Failed to load the pose model")
            raise
        if callback is not None:
            callback(self)
        return self

    async def load(self) -> "PoseDetector":
        """모델을 생성하고, 비디오가 있으면 첫 프레임을 기다린 뒤 검출 루프를 시작합니다."""
        config = dict(MODEL_CONFIG, min_detection_confidence=self.options.min_confidence)
        # 모델 생성은 블로킹 호출이므로 작업 스레드에서 실행합니다.
        # close()로 취소되더라도 생성 중인 모델은 끝까지 만든 뒤 해제합니다.
        building = asyncio.ensure_future(asyncio.to_thread(self._model_provider, MODEL_FAMILY, config))
        try:
            self.net = await asyncio.shield(building)
        except asyncio.CancelledError:
            building.add_done_callback(_close_orphaned_net)
            raise
        logger.info("Pose model ready (%s)", self.detection_type.value)

        if self.video is not None:
            if self.video.ready_state == HAVE_NOTHING:
                await self.video.wait_loaded()
            if self._stopped:
                logger.debug("Detector stopped before the video was ready; not starting the loop")
            else:
                self._start_loop(self.detection_type)
        return self

    def get_input(self, input=None) -> np.ndarray:
        """
        추정에 사용할 BGR 프레임을 결정합니다.
        ndarray, PIL 이미지, VideoSource, 또는 .elt/.canvas로 이를 감싼 객체를 받으며
        해당하지 않으면 생성자에서 연결한 비디오의 현재 프레임을 사용합니다.
        """
        image = _unwrap_input(input)
        if image is None:
            image = _unwrap_input(self.video)
        if image is None:
            raise ValueError("No input frame: pass an image or bind a video source with decoded data")
        return image

    async def detect_single(self, input=None, callback: Optional[Callable] = None):
        return await self._detect(DetectionMode.SINGLE, input, callback)

    async def detect_multiple(self, input=None, callback: Optional[Callable] = None):
        return await self._detect(DetectionMode.MULTIPLE, input, callback)

    async def _detect(self, mode: DetectionMode, input, callback):
        if callback is None and callable(input):
            input, callback = None, input

        if self.video is not None:
            self._stopped = False  # 명시적 호출은 stop() 이후에도 루프를 다시 시작합니다.
            return self._start_loop(mode, input)

        result = await self._estimate(input, mode)
        if callable(callback):
            callback(result)
        return result

    async def _estimate(self, input, mode: DetectionMode) -> List[Pose]:
        if self.net is None:
            raise RuntimeError("Pose model is not loaded yet; await detector.ready first")

        image = self.get_input(input)
        if mode is DetectionMode.MULTIPLE and not self._warned_multiple:
            logger.warning("Multiple-pose mode requests only %d pose per frame", MAX_POSES)
            self._warned_multiple = True

        result = await asyncio.to_thread(
            self.net.estimate_poses, image,
            max_poses=MAX_POSES, flip_horizontal=self.options.flip_horizontal,
        )
        self.events.emit("pose", result)
        return result

    def _start_loop(self, mode: DetectionMode, first_input=None) -> Optional[FrameLoop]:
        """
        비디오 검출 루프를 시작합니다. 첫 추정에는 first_input을, 이후에는 비디오 프레임을 사용합니다.
        이미 루프가 돌고 있으면 새 루프를 만들지 않습니다.
        """
        if self._loop is not None and self._loop.running:
            if first_input is not None:
                logger.warning("Detection loop already running on the bound video; ignoring explicit input")
            return self._loop

        pending = [first_input]

        async def produce():
            input = pending.pop() if pending else None
            return await self._estimate(input, mode)

        self._loop = FrameLoop(produce, self._frame_scheduler, name=f"pose-{mode.value}")
        return self._loop.start()

    @property
    def loop(self) -> Optional[FrameLoop]:
        return self._loop

    def on(self, event: str, listener: Callable) -> Callable[[], None]:
        return self.events.on(event, listener)

    def off(self, event: str, listener: Callable) -> None:
        self.events.off(event, listener)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """검출 루프를 멈춥니다. 로딩 중에 호출하면 로딩이 끝나도 루프를 시작하지 않습니다."""
        self._stopped = True
        if self._loop is not None:
            self._loop.stop()

    async def close(self) -> None:
        """로딩 중이면 취소하고, 루프가 끝나기를 기다린 뒤 모델을 해제합니다."""
        self.stop()
        if not self.ready.done() and self.ready is not asyncio.current_task():
            self.ready.cancel()
            await asyncio.wait([self.ready])
        if self._loop is not None and self._loop.running:
            await self._loop.wait()
        if self.net is not None:
            self.net.close()
            self.net = None


def _close_orphaned_net(building: asyncio.Future) -> None:
    if building.cancelled() or building.exception() is not None:
        return
    building.result().close()


def pose_detector(video_or_options_or_callback=None, options_or_callback=None, callback=None, **kwargs) -> PoseDetector:
    """위치 인자를 정리해 PoseDetector를 만듭니다. kwargs는 PoseDetector에 그대로 전달됩니다."""
    args = resolve_arguments(video_or_options_or_callback, options_or_callback, callback)
    return PoseDetector(*args, **kwargs)
