"""
Media handle: the single owner of the live camera stream.

A MediaSource opens one ObservationSource, keeps the most recent frame from a
background grabber thread and exposes:
- acquire(constraints): open the device and start capture (async)
- wait_ready(): readiness future resolved by the first delivered frame
- capture(): the latest frame, without touching the hardware
- release(): stop capture and close the device, exactly once
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from models.errors import ResourceUnavailable
from models.frame import FrameData
from .base import MediaConstraints, ObservationSource


SourceFactory = Callable[[MediaConstraints], ObservationSource]

# How long release() waits for the grabber before leaving the close to it
RELEASE_JOIN_TIMEOUT = 0.05


class MediaSource:
    """
    Scoped owner of a camera stream.

    Example:
        media = MediaSource(lambda c: create_source_from_config(camera_cfg, c))
        async with media:
            await media.acquire(MediaConstraints(640, 480, "user"))
            await media.wait_ready(timeout=10)
            frame = media.capture()
    """

    def __init__(
        self,
        source_factory: SourceFactory,
        max_consecutive_failures: int = 30,
        retry_delay: float = 0.01,
        frame_interval: float = 0.0,
    ):
        self._source_factory = source_factory
        self._max_failures = max(1, int(max_consecutive_failures))
        self._retry_delay = retry_delay
        self._frame_interval = frame_interval

        self._source: Optional[ObservationSource] = None
        self._constraints: Optional[MediaConstraints] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready: Optional[asyncio.Future] = None
        self._latest: Optional[FrameData] = None
        self._failure: Optional[ResourceUnavailable] = None

        self._grabber: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._release_lock = threading.Lock()
        self._released = False
        self._closed = False

    @property
    def constraints(self) -> Optional[MediaConstraints]:
        return self._constraints

    @property
    def is_acquired(self) -> bool:
        return self._source is not None and not self._released

    @property
    def is_released(self) -> bool:
        return self._released

    @property
    def failure(self) -> Optional[ResourceUnavailable]:
        """Terminal stream error recorded by the grabber, if any."""
        return self._failure

    @property
    def width(self) -> Optional[int]:
        frame = self._latest
        if frame is not None:
            return frame.width
        return self._constraints.width if self._constraints else None

    @property
    def height(self) -> Optional[int]:
        frame = self._latest
        if frame is not None:
            return frame.height
        return self._constraints.height if self._constraints else None

    async def acquire(self, constraints: MediaConstraints) -> "MediaSource":
        """
        Open the camera and begin hardware capture.

        Raises:
            ResourceUnavailable: device cannot be opened, a stream is already
                open, or this handle was released.
        """
        if self._released:
            raise ResourceUnavailable("media source was already released")
        if self._source is not None:
            raise ResourceUnavailable("a stream is already open for this pipeline")

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._ready = loop.create_future()
        self._constraints = constraints

        source = self._source_factory(constraints)
        logging.info(
            f"Requesting camera stream: {constraints.width}x{constraints.height}, "
            f"facing={constraints.facing}"
        )

        open_future = loop.run_in_executor(None, source.open)
        try:
            await asyncio.shield(open_future)
        except asyncio.CancelledError:
            # The device may still come up in the worker; close it once it does.
            open_future.add_done_callback(lambda f: self._close_abandoned(f, source))
            raise
        except ResourceUnavailable:
            source.close()
            raise
        except Exception as e:
            source.close()
            raise ResourceUnavailable(str(e)) from e

        if self._released:
            # Teardown won the race against the device open
            source.close()
            raise ResourceUnavailable("media source was released during acquisition")

        self._source = source
        self._grabber = threading.Thread(
            target=self._grab_loop,
            name=f"grabber-{source.source_id}",
            daemon=True,
        )
        self._grabber.start()
        return self

    def is_ready(self) -> bool:
        """True once the stream has delivered at least one frame."""
        return self._latest is not None and self._failure is None and not self._released

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait for the first frame.

        Raises:
            ResourceUnavailable: stream failed or was released before the first
                frame, or the timeout elapsed.
        """
        if self._ready is None:
            raise ResourceUnavailable("stream has not been acquired")
        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout)
        except asyncio.TimeoutError:
            raise ResourceUnavailable(f"no frame delivered within {timeout:.1f}s") from None

    def capture(self) -> Optional[FrameData]:
        """Return the latest frame (None until ready or after release)."""
        if self._released:
            return None
        return self._latest

    def release(self) -> bool:
        """
        Stop capture and close the device.

        Never blocks the caller on a hung read: if the grabber is stuck in
        the driver, the device is closed by the grabber once the read
        returns.

        Returns True if this call released the stream, False if it was
        already released.
        """
        with self._release_lock:
            if self._released:
                return False
            self._released = True

        self._stop.set()
        grabber = self._grabber
        blocked = False
        if grabber is not None and grabber is not threading.current_thread():
            grabber.join(timeout=RELEASE_JOIN_TIMEOUT)
            blocked = grabber.is_alive()

        if blocked:
            logging.warning("Grabber thread is blocked in a read; camera closes when the read returns")
        else:
            self._close_source()

        self._latest = None
        self._notify_loop(self._reject_ready, ResourceUnavailable("stream was released"))
        return True

    async def __aenter__(self) -> "MediaSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def _grab_loop(self) -> None:
        try:
            self._grab_frames()
        finally:
            if self._released:
                self._close_source()

    def _grab_frames(self) -> None:
        """Keep the latest frame; give up after too many consecutive failed reads."""
        failures = 0
        while not self._stop.is_set():
            try:
                frame_data = self._source.read()
            except Exception as e:
                logging.warning(f"Frame read raised: {e}")
                frame_data = None
            if self._stop.is_set():
                return

            if frame_data is None:
                failures += 1
                if failures >= self._max_failures:
                    logging.error(f"Too many consecutive read failures ({failures}), stream lost")
                    self._failure = ResourceUnavailable("camera stream stopped delivering frames")
                    self._notify_loop(self._reject_ready, self._failure)
                    return
                self._stop.wait(self._retry_delay)
                continue

            failures = 0
            first = self._latest is None
            self._latest = frame_data
            if first:
                logging.info(f"First frame received: {frame_data.width}x{frame_data.height}")
                self._notify_loop(self._resolve_ready)
            if self._frame_interval > 0:
                self._stop.wait(self._frame_interval)

    def _close_source(self) -> None:
        with self._release_lock:
            if self._closed or self._source is None:
                return
            self._closed = True
        try:
            self._source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")
        logging.info("Camera stream released")

    def _notify_loop(self, callback, *args) -> None:
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Event loop already closed during shutdown
            logging.debug("Event loop closed; readiness notification dropped")

    def _resolve_ready(self) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(None)

    def _reject_ready(self, exc: BaseException) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(exc)
            # Mark retrieved; waiters (if any) still receive it
            self._ready.exception()

    @staticmethod
    def _close_abandoned(open_future: asyncio.Future, source: ObservationSource) -> None:
        if not open_future.cancelled() and open_future.exception() is not None:
            logging.debug(f"Abandoned open failed: {open_future.exception()}")
        source.close()
