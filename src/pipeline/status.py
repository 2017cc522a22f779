"""
Thread-safe holder for the pipeline status.

Written from the event loop (acquisition, loader, detection loop) and read by
the web thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Union

from models.errors import PipelineError
from models.status import ALLOWED_TRANSITIONS, PipelineState, PipelineStatus


StatusListener = Callable[[PipelineStatus], None]


class StatusTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self._status = PipelineStatus()
        self._listeners: List[StatusListener] = []

    def add_listener(self, listener: StatusListener) -> None:
        """Call listener with the new status after every state change."""
        self._listeners.append(listener)

    def snapshot(self) -> PipelineStatus:
        with self._lock:
            return self._status

    @property
    def state(self) -> PipelineState:
        return self.snapshot().state

    def set_loading(self) -> bool:
        return self._transition(PipelineState.LOADING)

    def set_active(self) -> bool:
        return self._transition(PipelineState.ACTIVE)

    def set_error(self, error: Union[BaseException, str]) -> bool:
        if isinstance(error, PipelineError):
            message = error.describe()
        elif isinstance(error, BaseException):
            message = f"{type(error).__name__}: {error}"
        else:
            message = str(error)
        return self._transition(PipelineState.ERROR, message=message)

    def set_detection_count(self, count: int) -> None:
        """Record the face count of the latest completed inference (active state only)."""
        with self._lock:
            if self._status.state != PipelineState.ACTIVE:
                return
            if self._status.detection_count == count:
                return
            self._status = self._status.evolve(detection_count=count)

    def _transition(self, new_state: PipelineState, message: str = None) -> bool:
        with self._lock:
            current = self._status.state
            if new_state == current:
                return False
            if new_state not in ALLOWED_TRANSITIONS[current]:
                logging.warning(f"Ignoring status transition {current.value} -> {new_state.value}")
                return False
            self._status = self._status.evolve(state=new_state, message=message)
            status = self._status

        if new_state == PipelineState.ERROR:
            logging.error(f"Pipeline status: error ({message})")
        else:
            logging.info(f"Pipeline status: {current.value} -> {new_state.value}")

        for listener in self._listeners:
            try:
                listener(status)
            except Exception as e:
                logging.warning(f"Status listener error: {e}")
        return True
