"""
ObservationSource interface for pluggable video sources.

This defines the contract that every frame source implements so the media
handle can drive any of them:
- USB/CSI cameras
- RTSP/IP cameras
- Video files (handy for demos and tests)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models.frame import FrameData


@dataclass(frozen=True)
class MediaConstraints:
    """
    Capability request for a camera stream.

    Attributes:
        width: Requested frame width in pixels.
        height: Requested frame height in pixels.
        facing: "user" (front camera) or "environment" (rear camera).
    """
    width: int = 640
    height: int = 480
    facing: str = "user"

    @property
    def resolution(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "cam-01").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Abstract base class for observation sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to start hardware capture
        3. Call read() repeatedly to get frames
        4. Call close() to release the device

    Sources are not thread safe; the media handle reads from a single
    grabber thread.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open the source and begin capture.

        Raises:
            ResourceUnavailable: If the device cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """
        Read the next frame from the source.

        Returns None if no frame is available (end of file, camera error).
        """

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call multiple times."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
