"""
BlazePose 웹캠 예제
1) 설치: pip install -e .
2) 실행: python main.py [--camera 0] [--mode single|multiple] [--flip] [--log-level DEBUG]
팁:
- q 키를 누르면 종료됩니다.
- 영상은 매 프레임 그려지고, 키포인트는 마지막으로 받은 검출 결과로 그려집니다.
"""
import argparse
import asyncio
import warnings

import cv2

from logger import get_logger, set_level
from pose_detector import DetectionMode, pose_detector
from render_loop import PoseCell, RenderLoop
from video_source import VideoSource

# Protobuf/3rd-party deprecation warnings can spam the console; hide them.
warnings.filterwarnings("ignore", category=DeprecationWarning)
warnings.filterwarnings("ignore", message=r".*GetPrototype\(\) is deprecated.*")

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="BlazePose webcam sketch")
    parser.add_argument("--camera", type=int, default=0, help="Camera ID")
    parser.add_argument("--mode", default=DetectionMode.SINGLE.value,
                        choices=[m.value for m in DetectionMode], help="Detection type")
    parser.add_argument("--flip", action="store_true", help="Mirror keypoints horizontally")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> None:
    """
    메인 루프: 카메라를 열고, 렌더 루프를 바로 시작한 뒤 모델이 준비되면 검출 결과를 반영합니다.
    카메라를 열지 못해도 렌더 루프는 계속 실행됩니다.
    """
    video = VideoSource(args.camera)  # 웹캠을 엽니다 (0은 기본 카메라).
    if video.open():
        video.play()

    poses = PoseCell()  # 마지막 검출 결과
    render = RenderLoop(video, poses)
    render.status_lines = [("Loading model...", (0, 200, 255))]

    def got_poses(results):
        logger.debug("%d pose(s) detected", len(results))
        poses.set(results)

    def model_ready(detector):
        logger.info("model ready")
        render.status_lines = []

    def load_done(task):
        if not task.cancelled() and task.exception() is not None:
            render.status_lines = [("Model failed to load", (0, 0, 255))]

    detector = pose_detector(video, {"flip_horizontal": args.flip, "detection_type": args.mode}, model_ready)
    detector.on("pose", got_poses)
    detector.ready.add_done_callback(load_done)

    try:
        await render.run()
    finally:
        await detector.close()
        video.release()
        cv2.destroyAllWindows()


def main(argv=None):
    args = parse_args(argv)
    set_level(args.log_level)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
