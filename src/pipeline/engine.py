"""
Pipeline engine for the live face monitor.

Composes the media handle, backend loader, detection loop and overlay
renderer into one lifecycle unit:

    acquire camera -> wait for first frame -> load backend + model
        -> start cycle trigger -> (capture, render, maybe infer) per cycle

Terminal errors land in the status tracker and tear the pipeline down; there
is no automatic retry. A new Pipeline must be created to recover.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

import cv2

from models.config import Config
from models.errors import PipelineError
from models.status import PipelineStats, PipelineStatus
from observation import MediaConstraints, MediaSource, create_source_from_config
from inference.loader import BackendLoader
from .loop import CycleTrigger, DetectionLoop
from .overlay import OverlayRenderer, Surface
from .status import StatusTracker


WINDOW_NAME = "Live Face Monitor"


class Pipeline:
    """
    One capture / inference / overlay pipeline instance.

    Example:
        pipeline = create_pipeline_from_config(config)
        await pipeline.run()       # returns after stop() or a terminal error
    """

    def __init__(
        self,
        config: Config,
        media: MediaSource,
        loader: BackendLoader,
        status: Optional[StatusTracker] = None,
        renderer: Optional[OverlayRenderer] = None,
    ):
        self.config = config
        self.media = media
        self.loader = loader
        self.status = status or loader.status or StatusTracker()
        if loader.status is None:
            loader.status = self.status
        self.renderer = renderer or OverlayRenderer(config.overlay)
        self.stats = PipelineStats()

        self.surface: Optional[Surface] = None
        self.detection_loop: Optional[DetectionLoop] = None
        self.trigger: Optional[CycleTrigger] = None

        self._callbacks: List[Callable[[Surface], None]] = []
        self._started = False
        self._stopped = False

    @property
    def constraints(self) -> MediaConstraints:
        cam = self.config.camera
        return MediaConstraints(width=cam.width, height=cam.height, facing=cam.facing)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def status_snapshot(self) -> PipelineStatus:
        return self.status.snapshot()

    def add_callback(self, callback: Callable[[Surface], None]) -> None:
        """
        Add a callback to be called after each rendered cycle.

        Args:
            callback: Function taking the presentation surface.
        """
        self._callbacks.append(callback)

    async def start(self) -> bool:
        """
        Acquire the camera, load the backend and start the cycle trigger.

        Returns True once the detection loop is running, False if the
        pipeline ended in the error state or was stopped during startup.
        """
        if self._started:
            raise RuntimeError("Pipeline can only be started once")
        self._started = True

        try:
            await self.media.acquire(self.constraints)
            backend = await self.loader.load(self.media, ready_timeout=self.config.camera.ready_timeout)
        except PipelineError as e:
            if not self._stopped:
                self.status.set_error(e)
            self.stop()
            return False
        except asyncio.CancelledError:
            self.stop()
            raise

        if self._stopped:
            return False

        self.surface = Surface(self.media.width, self.media.height)
        self.stats = PipelineStats()
        self.detection_loop = DetectionLoop(
            media=self.media,
            backend=backend,
            renderer=self.renderer,
            surface=self.surface,
            status=self.status,
            stats=self.stats,
        )
        self.trigger = CycleTrigger(self.config.pipeline.cycle_interval)
        self.trigger.start(self._on_cycle)
        logging.info(
            f"Detection loop started: {self.surface.width}x{self.surface.height} "
            f"@ {self.config.pipeline.refresh_hz:g} Hz"
        )
        return True

    async def run(self) -> None:
        """Start the pipeline and keep it running until stopped or failed."""
        try:
            if not await self.start():
                return
            await self.trigger.wait_stopped()
            if self.trigger.error is not None:
                self.status.set_error(self.trigger.error)
        finally:
            self.stop()

    def stop(self) -> None:
        """
        Tear down: cancel the trigger, discard in-flight inference and any
        model load still in progress, release the camera. Safe to call any
        number of times.
        """
        if self._stopped:
            return
        self._stopped = True

        if self.trigger is not None:
            self.trigger.cancel()
        if self.detection_loop is not None:
            self.detection_loop.close()
        self.loader.abandon()
        self.media.release()

        if self.config.pipeline.display:
            cv2.destroyAllWindows()

        logging.info(
            f"Pipeline stopped: cycles={self.stats.cycles}, "
            f"inferences={self.stats.inferences_completed}, failed={self.stats.inferences_failed}"
        )

    def _on_cycle(self) -> None:
        failure = self.media.failure
        if failure is not None:
            self.status.set_error(failure)
            self.stop()
            return

        self.detection_loop.run_cycle()

        for callback in self._callbacks:
            try:
                callback(self.surface)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        if self.config.pipeline.display and not self._handle_display():
            logging.info("Display closed by user")
            self.stop()
            return

        self._handle_periodic_tasks()

    def _handle_display(self) -> bool:
        """
        Show the overlay in a local window.

        Returns False if user pressed 'q' to quit.
        """
        frame = self.surface.snapshot()
        if frame is not None:
            cv2.imshow(WINDOW_NAME, frame)
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.pipeline.stats_log_interval:
            status = self.status.snapshot()
            logging.info(
                f"Pipeline stats: cycles={self.stats.cycles}, "
                f"inferences={self.stats.inferences_completed}, "
                f"failed={self.stats.inferences_failed}, "
                f"skipped={self.stats.frames_skipped}, "
                f"last_inference_ms={self.stats.last_inference_ms}, "
                f"faces={status.detection_count}"
            )
            self.stats.last_stats_log_time = now


def create_pipeline_from_config(config: Config, display: Optional[bool] = None) -> Pipeline:
    """
    Factory function to create a Pipeline from the typed config.

    Args:
        config: Full application config.
        display: Override pipeline.display (local OpenCV window).
    """
    if display is not None:
        config.pipeline.display = display

    camera_cfg = config.camera
    status = StatusTracker()
    media = MediaSource(
        lambda constraints: create_source_from_config(camera_cfg, constraints),
        max_consecutive_failures=camera_cfg.max_consecutive_failures,
        frame_interval=(1.0 / camera_cfg.fps) if isinstance(camera_cfg.device_id, str) else 0.0,
    )
    loader = BackendLoader(config.detection, status=status)
    return Pipeline(config, media, loader, status=status)
