"""
Per-frame detection loop and the repeating cycle trigger that drives it.

Each display cycle captures the latest frame, renders it with the last
completed detection set and, only when no inference is outstanding, submits
that frame for inference. Frames that arrive while an inference is running
are rendered but never queued.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from models.detection import EMPTY_DETECTIONS, DetectionSet
from models.errors import InferenceTransientError
from models.frame import FrameData
from models.status import PipelineStats
from inference.backend import InferenceBackend
from .overlay import OverlayRenderer, Surface
from .status import StatusTracker

if TYPE_CHECKING:
    from observation.media import MediaSource


class LoopState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class CycleTrigger:
    """
    Repeating display-refresh trigger with explicit cancellation.

    The callback runs once per interval on the event loop. An exception from
    the callback stops the trigger and is kept in `error`.
    """

    def __init__(self, interval: float):
        self.interval = max(0.0, float(interval))
        self.cycles = 0
        self.error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self, on_cycle: Callable[[], None]) -> None:
        if self._task is not None or self._cancelled:
            raise RuntimeError("CycleTrigger can only be started once")
        self._task = asyncio.get_running_loop().create_task(self._run(on_cycle))

    def cancel(self) -> bool:
        """Stop issuing cycles. Returns False if already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    async def _run(self, on_cycle: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while not self._cancelled:
            try:
                on_cycle()
            except Exception as e:
                logging.exception(f"Cycle callback failed, stopping trigger: {e}")
                self.error = e
                self._cancelled = True
                return
            self.cycles += 1

            next_at += self.interval
            delay = next_at - loop.time()
            if delay < 0:
                # Fell behind; resync instead of bursting to catch up
                next_at = loop.time()
                delay = 0
            await asyncio.sleep(delay)


class DetectionLoop:
    """
    Backpressured capture -> render -> infer loop.

    States:
        IDLE: no inference outstanding; the next cycle submits its frame.
        PENDING: an inference is running; cycles only capture and render.

    The rendered detection set is replaced by a single reference swap when an
    inference completes, so a render never sees a partially updated set.
    """

    def __init__(
        self,
        media: "MediaSource",
        backend: InferenceBackend,
        renderer: OverlayRenderer,
        surface: Surface,
        status: StatusTracker,
        stats: Optional[PipelineStats] = None,
        executor: Optional[Executor] = None,
    ):
        self._media = media
        self._backend = backend
        self._renderer = renderer
        self._surface = surface
        self._status = status
        self.stats = stats or PipelineStats()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")

        self._state = LoopState.IDLE
        self._detections: DetectionSet = EMPTY_DETECTIONS
        self._pending: Optional[asyncio.Task] = None
        self._cycle = 0
        self._closed = False

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def detections(self) -> DetectionSet:
        """Most recently completed detection set."""
        return self._detections

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def closed(self) -> bool:
        return self._closed

    def run_cycle(self) -> bool:
        """
        Run one display cycle.

        Returns True if this cycle submitted a new inference.
        """
        if self._closed:
            return False

        self._cycle += 1
        self.stats.cycles += 1

        frame_data = self._media.capture()
        if frame_data is None:
            return False

        self._renderer.render(frame_data, self._detections, self._surface)
        self.stats.frames_rendered += 1

        if self._state == LoopState.PENDING:
            self.stats.frames_skipped += 1
            return False

        self._submit(frame_data)
        return True

    async def wait_idle(self) -> None:
        """Wait for the outstanding inference (if any) to finish."""
        pending = self._pending
        if pending is not None and not pending.done():
            await asyncio.wait({pending})

    def close(self) -> None:
        """Stop submitting; any in-flight result is discarded."""
        if self._closed:
            return
        self._closed = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _submit(self, frame_data: FrameData) -> None:
        self._state = LoopState.PENDING
        self.stats.inferences_submitted += 1
        self._pending = asyncio.get_running_loop().create_task(self._infer(frame_data))

    async def _infer(self, frame_data: FrameData) -> None:
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        try:
            detections = await loop.run_in_executor(self._executor, self._backend.detect, frame_data.frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closed:
                err = InferenceTransientError(str(e) or type(e).__name__)
                self.stats.inferences_failed += 1
                logging.warning(f"Inference failed on frame {frame_data.frame_index}: {err.describe()}")
                self._state = LoopState.IDLE
            return

        if self._closed:
            return

        latency_ms = (time.perf_counter() - started) * 1000.0
        self._detections = DetectionSet.build(detections, frame_data.frame_index, self._cycle, latency_ms)
        self.stats.inferences_completed += 1
        self.stats.last_inference_ms = latency_ms
        self._status.set_detection_count(len(self._detections))
        self._state = LoopState.IDLE
