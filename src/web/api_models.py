from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class PipelineStatsResponse(BaseModel):
    cycles: int
    frames_rendered: int
    frames_skipped: int
    inferences_submitted: int
    inferences_completed: int
    inferences_failed: int
    last_inference_ms: Optional[float] = None
    uptime_seconds: int


class PipelineStatusResponse(BaseModel):
    """
    Status polled by the dashboard to choose between the spinner, the error
    text and the live view.
    """
    state: str = Field(..., description="initializing|loading|active|error")
    message: Optional[str] = Field(None, description="Error description in the error state")
    detection_count: int = Field(0, description="Faces in the most recent completed inference")
    live: bool = Field(False, description="True while the overlay is being updated")
    stats: Optional[PipelineStatsResponse] = None
    timestamp: float
