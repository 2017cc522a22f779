"""
Observation layer for pluggable video sources.

This layer abstracts the source of frames (camera, video file, remote stream)
from the detection pipeline. Each source implements the ObservationSource
interface; MediaSource owns exactly one of them for the pipeline's lifetime.
"""

from __future__ import annotations

from typing import Optional

from models.config import CameraConfig
from .base import MediaConstraints, ObservationConfig, ObservationSource
from .media import MediaSource
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source_from_config(
    camera_cfg: CameraConfig,
    constraints: Optional[MediaConstraints] = None,
    source_id: str = "main-camera",
) -> ObservationSource:
    """
    Factory: build the observation source named by camera.backend.

    Raises:
        ValueError: Unknown camera backend.
    """
    if camera_cfg.backend == "opencv":
        return OpenCVSource(
            OpenCVSourceConfig.from_camera_config(camera_cfg, constraints, source_id=source_id)
        )
    raise ValueError(f"Unsupported camera backend: {camera_cfg.backend}")


__all__ = [
    "MediaConstraints",
    "MediaSource",
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
