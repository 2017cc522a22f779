"""
Error taxonomy for the live face monitor.

Terminal errors put the pipeline into the error state and require a full
re-creation. Transient errors affect a single frame and are handled locally by
the detection loop.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    terminal: bool = True

    @property
    def kind(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        """Return "<Kind>: <detail>" (or just the kind when there is no detail)."""
        detail = str(self)
        return f"{self.kind}: {detail}" if detail else self.kind


class ResourceUnavailable(PipelineError):
    """Camera could not be acquired (permission denied, no device, device busy) or was lost."""


class BackendInitError(PipelineError):
    """No compatible compute backend exists on this host."""


class ModelLoadError(PipelineError):
    """Model weights could not be fetched or parsed."""


class InferenceTransientError(PipelineError):
    """A single inference call failed; the frame's detection update is skipped."""

    terminal = False
