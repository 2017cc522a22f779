"""
Pipeline status and runtime statistics models.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class PipelineState(str, Enum):
    """Lifecycle states of one pipeline instance."""
    INITIALIZING = "initializing"
    LOADING = "loading"
    ACTIVE = "active"
    ERROR = "error"


# Forward-only transitions; ERROR is reachable from everywhere and leads nowhere.
ALLOWED_TRANSITIONS = {
    PipelineState.INITIALIZING: {PipelineState.LOADING, PipelineState.ERROR},
    PipelineState.LOADING: {PipelineState.ACTIVE, PipelineState.ERROR},
    PipelineState.ACTIVE: {PipelineState.ERROR},
    PipelineState.ERROR: set(),
}


@dataclass(frozen=True)
class PipelineStatus:
    """
    Status value surfaced to the presentation layer.

    Attributes:
        state: Current lifecycle state.
        message: Human-readable error description (only set in the error state).
        detection_count: Number of faces in the most recently completed inference.
        updated_at: Unix timestamp of the last change.
    """
    state: PipelineState = PipelineState.INITIALIZING
    message: Optional[str] = None
    detection_count: int = 0
    updated_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.state == PipelineState.ERROR

    @property
    def is_live(self) -> bool:
        """True while the overlay is being fed by the detection loop."""
        return self.state == PipelineState.ACTIVE

    def evolve(self, **changes: Any) -> "PipelineStatus":
        changes.setdefault("updated_at", time.time())
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineStatus":
        """Adapter: Create from dictionary (e.g., from /api/status response)."""
        try:
            state = PipelineState(d.get("state", "initializing"))
        except ValueError:
            state = PipelineState.ERROR
        return cls(
            state=state,
            message=d.get("message"),
            detection_count=int(d.get("detection_count", 0)),
            updated_at=d.get("updated_at", 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": self.state.value,
            "message": self.message,
            "detection_count": self.detection_count,
            "updated_at": self.updated_at,
        }


@dataclass
class PipelineStats:
    """Runtime statistics for the detection loop."""
    cycles: int = 0
    frames_rendered: int = 0
    frames_skipped: int = 0
    inferences_submitted: int = 0
    inferences_completed: int = 0
    inferences_failed: int = 0
    last_inference_ms: Optional[float] = None
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycles": self.cycles,
            "frames_rendered": self.frames_rendered,
            "frames_skipped": self.frames_skipped,
            "inferences_submitted": self.inferences_submitted,
            "inferences_completed": self.inferences_completed,
            "inferences_failed": self.inferences_failed,
            "last_inference_ms": self.last_inference_ms,
            "uptime_seconds": int(self.uptime_seconds),
        }
