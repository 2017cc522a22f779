"""
Pipeline module for the live face monitor.

The pipeline orchestrates the full processing flow:
- Camera acquisition through the media handle
- One-time backend and model loading
- The backpressured per-frame detection loop
- Overlay rendering and status reporting
"""

from .engine import Pipeline, create_pipeline_from_config
from .loop import CycleTrigger, DetectionLoop, LoopState
from .overlay import OverlayRenderer, Surface
from .status import StatusTracker

__all__ = [
    "Pipeline",
    "create_pipeline_from_config",
    "CycleTrigger",
    "DetectionLoop",
    "LoopState",
    "OverlayRenderer",
    "Surface",
    "StatusTracker",
]
