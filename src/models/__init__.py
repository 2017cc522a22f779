"""
Typed models for the live face monitor.

Frames, detections, pipeline status, configuration and the error taxonomy
shared by the observation, inference and pipeline layers.
"""

from .frame import FrameData
from .detection import BoundingBox, Detection, DetectionSet, EMPTY_DETECTIONS
from .status import PipelineState, PipelineStatus, PipelineStats
from .errors import (
    PipelineError,
    ResourceUnavailable,
    BackendInitError,
    ModelLoadError,
    InferenceTransientError,
)
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    OverlayConfig,
    PipelineConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "BoundingBox",
    "Detection",
    "DetectionSet",
    "EMPTY_DETECTIONS",
    # Status
    "PipelineState",
    "PipelineStatus",
    "PipelineStats",
    # Errors
    "PipelineError",
    "ResourceUnavailable",
    "BackendInitError",
    "ModelLoadError",
    "InferenceTransientError",
    # Config
    "Config",
    "CameraConfig",
    "DetectionConfig",
    "OverlayConfig",
    "PipelineConfig",
    "WebConfig",
]
