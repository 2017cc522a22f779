"""
OpenCV-based observation source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- RTSP/IP cameras (device_id as str URL)
- Video files (device_id as file path)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.config import CameraConfig
from models.errors import ResourceUnavailable
from models.frame import FrameData
from .base import MediaConstraints, ObservationConfig, ObservationSource


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int), stream URL (str), or file path (str).
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        swap_rb: Swap R/B channels (fixes RGB vs BGR issues).
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Flip frame horizontally (mirror view for front cameras).
        flip_vertical: Flip frame vertically.
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(
        cls,
        camera_cfg: CameraConfig,
        constraints: Optional[MediaConstraints] = None,
        source_id: str = "camera",
    ) -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig from the camera config section.

        Constraints, when given, override the configured resolution and facing.
        """
        if constraints is not None:
            resolution = constraints.resolution
            camera_cfg = CameraConfig.from_dict({**camera_cfg.to_dict(), "facing": constraints.facing})
        else:
            resolution = (camera_cfg.width, camera_cfg.height)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.fps,
            device_id=camera_cfg.resolve_device(),
            swap_rb=camera_cfg.swap_rb,
            rotate=camera_cfg.rotate,
            flip_horizontal=camera_cfg.flip_horizontal,
            flip_vertical=camera_cfg.flip_vertical,
        )


class OpenCVSource(ObservationSource):
    """
    OpenCV-based observation source for cameras and video files.

    Wraps cv2.VideoCapture to provide frames as FrameData objects. There is no
    reconnect logic here: a device that cannot be opened raises
    ResourceUnavailable and a failing read returns None.
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_stream_url(self) -> bool:
        return isinstance(self.device_id, str) and "://" in self.device_id

    @property
    def is_file(self) -> bool:
        """Check if this is a video file."""
        return (
            isinstance(self.device_id, str)
            and not self.is_stream_url
            and os.path.exists(self.device_id)
        )

    def open(self) -> None:
        """Open the video source."""
        if self._is_open:
            return

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            raise ResourceUnavailable(
                f"cannot open video device {self._display_name()} "
                f"(permission denied, missing or busy)"
            )

        # Capture properties only apply to local cameras
        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._opencv_config.fps:
                cap.set(cv2.CAP_PROP_FPS, self._opencv_config.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, self._opencv_config.buffer_size)

            actual_w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
            actual_h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
            actual_fps = cap.get(cv2.CAP_PROP_FPS)
            logging.info(
                f"Camera actual settings - Resolution: ({actual_w}x{actual_h}), FPS: {actual_fps}"
            )

        self._cap = cap
        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={self._display_name()}, resolution={self._opencv_config.resolution}"
        )

    def read(self) -> Optional[FrameData]:
        """Read the next frame from the source."""
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None:
            if self.is_file:
                logging.info("End of video file reached")
            return None

        frame = self._apply_transforms(frame)
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Apply configured image transforms (rotate, flip, swap_rb)."""
        cfg = self._opencv_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal or cfg.flip_vertical:
            if cfg.flip_horizontal and cfg.flip_vertical:
                flip_code = -1
            elif cfg.flip_horizontal:
                flip_code = 1
            else:
                flip_code = 0
            frame = cv2.flip(frame, flip_code)

        if cfg.swap_rb:
            frame = frame[..., ::-1].copy()

        return frame

    def close(self) -> None:
        """Close the video source and release the device."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False

    def get_video_info(self) -> Dict[str, Any]:
        """Get information about the open device."""
        if self._cap is None or not self._cap.isOpened():
            return {}

        return {
            "width": int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": self._cap.get(cv2.CAP_PROP_FPS),
            "frame_count": int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT)) if self.is_file else None,
        }

    def _display_name(self) -> str:
        # Hide credentials embedded in stream URLs
        device = str(self.device_id)
        if self.is_stream_url and "@" in device:
            scheme, rest = device.split("://", 1)
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return device
