from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ..api_models import PipelineStatusResponse
from ..services.stream_service import StreamService
from ..state import state

router = APIRouter()


@router.get("/status", response_model=PipelineStatusResponse)
def status():
    """
    Pipeline status for the dashboard.
    Fields:
    - state: initializing|loading|active|error
    - message: error description (None unless state is error)
    - detection_count: faces found by the most recent completed inference
    - live: True while the overlay is being updated
    - stats: detection loop counters (None before the pipeline exists)
    """
    snapshot = state.get_status()
    return {
        **snapshot.to_dict(),
        "live": snapshot.is_live,
        "stats": state.get_stats(),
        "timestamp": time.time(),
    }


@router.get("/snapshot.jpg")
def snapshot():
    """Latest overlay frame as JPEG."""
    jpg = StreamService.snapshot_jpeg(state.get_surface())
    if jpg is None:
        return JSONResponse({"detail": "No frame rendered yet"}, status_code=503)
    return Response(content=jpg, media_type="image/jpeg")


@router.get("/stream")
def stream(fps: Optional[int] = None):
    """MJPEG stream of the overlay surface (defaults to web.stream_fps)."""
    if fps is None:
        fps = state.config.web.stream_fps if state.config is not None else 10
    return StreamingResponse(
        StreamService.mjpeg_stream(state.get_surface, fps=fps),
        media_type="multipart/x-mixed-replace; boundary=frame",
    )
