"""Shared fixtures for pose detector tests.

The MediaPipe model, the camera and the frame scheduler are all fakes,
so no ML runtime or webcam is needed.
"""

import asyncio
import time

import numpy as np
import pytest

from pose_model import Keypoint, Pose


class FakeNet:
    """Stands in for BlazePoseDetector; records every estimate_poses call."""

    def __init__(self, fail_on_call=None):
        self.calls = []
        self.closed = False
        self._fail_on_call = fail_on_call

    def estimate_poses(self, image, max_poses=1, flip_horizontal=False):
        self.calls.append({"shape": image.shape, "max_poses": max_poses, "flip_horizontal": flip_horizontal})
        if self._fail_on_call is not None and len(self.calls) == self._fail_on_call:
            raise RuntimeError("inference failed")
        return [Pose(keypoints=[Keypoint("nose", 10.0, 20.0, 0.9)])]

    def close(self):
        self.closed = True


class Ticker:
    """Frame scheduler that only advances when the test calls tick()."""

    def __init__(self):
        self._queue = asyncio.Queue()
        self.waits = 0

    async def __call__(self):
        self.waits += 1
        await self._queue.get()

    def tick(self):
        self._queue.put_nowait(None)


@pytest.fixture
def frame():
    return np.zeros((240, 320, 3), dtype=np.uint8)


@pytest.fixture
def fake_net():
    return FakeNet()


@pytest.fixture
def provider(fake_net):
    """Model provider returning fake_net and recording its arguments."""
    calls = []

    def _provider(model, config):
        calls.append((model, config))
        return fake_net

    _provider.calls = calls
    return _provider


@pytest.fixture
def make_ticker():
    return Ticker


@pytest.fixture
def wait_until():
    """Poll a condition from inside a running event loop."""
    async def _wait(condition, timeout=2.0):
        deadline = time.monotonic() + timeout
        while not condition():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.001)
    return _wait


@pytest.fixture
def make_net():
    return FakeNet
