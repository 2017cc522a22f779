"""
Test doubles for the camera, the media handle and the inference backend.
"""

import asyncio
import threading
import time

import numpy as np

from models.detection import Detection
from models.frame import FrameData
from observation.base import ObservationConfig, ObservationSource


def make_frame(index, width=64, height=48):
    """Frame whose pixels all carry index % 256 so a backend can tell frames apart."""
    frame = np.full((height, width, 3), index % 256, dtype=np.uint8)
    return FrameData.from_numpy(frame, timestamp=time.time(), frame_index=index, source="fake")


def frame_id(frame):
    return int(frame[0, 0, 0])


def run(coro):
    return asyncio.run(coro)


async def wait_until(predicate, timeout=2.0, interval=0.005):
    """Poll predicate on the event loop; fail the test when it never holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(interval)


class FakeCamera(ObservationSource):
    """
    Camera that delivers numbered frames.

    max_frames=None streams forever; afterwards every read returns None.
    first_frame_delay holds back the first frame to simulate a slow device.
    """

    def __init__(
        self,
        max_frames=None,
        open_error=None,
        width=64,
        height=48,
        read_delay=0.002,
        first_frame_delay=0.0,
    ):
        super().__init__(ObservationConfig(source_id="fake-camera"))
        self.max_frames = max_frames
        self.open_error = open_error
        self.width = width
        self.height = height
        self.read_delay = read_delay
        self.first_frame_delay = first_frame_delay
        self.open_calls = 0
        self.close_calls = 0

    def open(self):
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error
        self._is_open = True

    def read(self):
        if not self._is_open:
            return None
        if self._frame_index == 0 and self.first_frame_delay:
            time.sleep(self.first_frame_delay)
        time.sleep(self.read_delay)
        if self.max_frames is not None and self._frame_index >= self.max_frames:
            return None
        self._frame_index += 1
        return make_frame(self._frame_index, self.width, self.height)

    def close(self):
        self.close_calls += 1
        self._is_open = False


class SteppingMedia:
    """Media handle stand-in: every capture() returns the next numbered frame."""

    def __init__(self, width=64, height=48):
        self.width = width
        self.height = height
        self.captured = 0
        self.failure = None

    def capture(self):
        self.captured += 1
        return make_frame(self.captured, self.width, self.height)


class GatedMedia:
    """Media handle stand-in whose readiness is controlled by the test."""

    def __init__(self):
        self.ready = asyncio.Event()
        self.error = None
        self.wait_calls = 0
        self.is_released = False

    async def wait_ready(self, timeout=None):
        self.wait_calls += 1
        if self.error is not None:
            raise self.error
        await self.ready.wait()


class RecordingRenderer:
    """Renderer stand-in that records what each cycle drew."""

    def __init__(self):
        self.rendered = []

    def render(self, frame, detections, surface):
        self.rendered.append((frame.frame_index, detections))


class FakeBackend:
    """
    Inference backend with controllable latency and outcome.

    With gated=True each detect() call blocks until release() is called once.
    outcome(call_number, frame_id) returns the detections or raises.
    """

    def __init__(self, gated=False, delay=0.0, outcome=None):
        self.gated = gated
        self.delay = delay
        self.outcome = outcome or (lambda n, fid: [_face(fid)])
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._permits = threading.Semaphore(0)
        self._lock = threading.Lock()

    def release(self, n=1):
        for _ in range(n):
            self._permits.release()

    def detect(self, frame):
        fid = frame_id(frame)
        with self._lock:
            self.calls.append(fid)
            call_number = len(self.calls)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.gated:
                self._permits.acquire(timeout=5.0)
            if self.delay:
                time.sleep(self.delay)
            return self.outcome(call_number, fid)
        finally:
            with self._lock:
                self.active -= 1


def _face(offset):
    x = float(offset % 16)
    return Detection.from_corners((x, x), (x + 10.0, x + 10.0), confidence=0.9, label="face")
