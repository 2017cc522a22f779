"""
Overlay rendering onto a presentation surface.

The renderer draws into the surface's back buffer and presents it in one swap,
so readers (local window, MJPEG stream) always get a fully drawn frame.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from models.config import OverlayConfig
from models.detection import Detection
from models.frame import FrameData


Color = Tuple[int, int, int]

COLOR_LIVE = (51, 71, 225)  # Coral red (BGR)
COLOR_TEXT = (255, 255, 255)


class Surface:
    """
    2D drawing target sized to the video frame's native resolution.

    Drawing primitives are called from the event loop only; snapshot() and
    encode_jpeg() may be called from any thread.
    """

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self._back: Optional[np.ndarray] = None
        self._front: Optional[np.ndarray] = None
        self._version = 0
        self._lock = threading.Lock()

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def version(self) -> int:
        """Number of frames presented so far."""
        return self._version

    def draw_image(self, image: np.ndarray) -> None:
        """Start a new frame: fill the back buffer with image at full surface size."""
        h, w = image.shape[:2]
        if (w, h) == self.size:
            self._back = image.copy()
        else:
            self._back = cv2.resize(image, self.size, interpolation=cv2.INTER_LINEAR)

    def draw_rectangle(
        self,
        top_left: Tuple[int, int],
        bottom_right: Tuple[int, int],
        color: Color,
        thickness: int = 2,
    ) -> None:
        self._require_back()
        cv2.rectangle(self._back, top_left, bottom_right, color, thickness)

    def draw_label(self, text: str, origin: Tuple[int, int], background: Color, scale: float = 0.6) -> None:
        """Draw text on a filled box whose top-left corner is origin."""
        self._require_back()
        font = cv2.FONT_HERSHEY_SIMPLEX
        (tw, th), baseline = cv2.getTextSize(text, font, scale, 1)
        x, y = origin
        cv2.rectangle(self._back, (x, y), (x + tw + 8, y + th + baseline + 6), background, -1)
        cv2.putText(self._back, text, (x + 4, y + th + 3), font, scale, COLOR_TEXT, 1, cv2.LINE_AA)

    def present(self) -> None:
        """Publish the back buffer as the current frame."""
        self._require_back()
        with self._lock:
            self._front = self._back
            self._version += 1
        self._back = None

    def snapshot(self) -> Optional[np.ndarray]:
        """Copy of the last presented frame (None before the first one)."""
        with self._lock:
            if self._front is None:
                return None
            return self._front.copy()

    def encode_jpeg(self, quality: int = 80) -> Optional[bytes]:
        frame = self.snapshot()
        if frame is None:
            return None
        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
        if not ok:
            return None
        return buf.tobytes()

    def _require_back(self) -> None:
        if self._back is None:
            raise RuntimeError("draw_image() must start a frame before drawing on it")


class OverlayRenderer:
    """Draws a frame plus its face boxes; bounded, synchronous, never blocks."""

    def __init__(self, cfg: Optional[OverlayConfig] = None):
        self.cfg = cfg or OverlayConfig()

    def render(self, frame: FrameData, detections: Iterable[Detection], surface: Surface) -> None:
        surface.draw_image(frame.frame)

        # Boxes are in source-frame pixels; only surface scaling applies
        sx = surface.width / float(frame.width)
        sy = surface.height / float(frame.height)
        color = tuple(int(c) for c in self.cfg.box_color)

        count = 0
        for det in detections:
            x1, y1, x2, y2 = det.bbox.scaled(sx, sy).as_int_tuple()
            surface.draw_rectangle((x1, y1), (x2, y2), color, self.cfg.thickness)
            count += 1

        if self.cfg.show_live_badge:
            surface.draw_label("LIVE", (10, 10), COLOR_LIVE)
        if self.cfg.show_count:
            surface.draw_label(f"Faces: {count}", (10, surface.height - 34), (40, 40, 40))

        surface.present()
