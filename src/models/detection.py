"""
Detection models for face detection results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple

import numpy as np


Point = Tuple[float, float]


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return self.width * self.height

    def scaled(self, sx: float, sy: float) -> "BoundingBox":
        """Return a copy with x scaled by sx and y scaled by sy."""
        return BoundingBox(self.x1 * sx, self.y1 * sy, self.x2 * sx, self.y2 * sy)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(round(self.x1)), int(round(self.y1)), int(round(self.x2)), int(round(self.y2)))

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)


@dataclass(frozen=True)
class Detection:
    """
    A region of a frame where the detector believes a face is present.

    Attributes:
        bbox: Bounding box in source-frame pixel coordinates.
        confidence: Detection confidence score (0-1).
        label: Optional human-readable class name.
    """
    bbox: BoundingBox
    confidence: float = 1.0
    label: Optional[str] = None

    @property
    def top_left(self) -> Point:
        return (self.bbox.x1, self.bbox.y1)

    @property
    def bottom_right(self) -> Point:
        return (self.bbox.x2, self.bbox.y2)

    @classmethod
    def from_corners(
        cls,
        top_left: Point,
        bottom_right: Point,
        confidence: float = 1.0,
        label: Optional[str] = None,
    ) -> "Detection":
        """Create Detection from its top-left and bottom-right corners."""
        return cls(
            bbox=BoundingBox(
                x1=float(top_left[0]),
                y1=float(top_left[1]),
                x2=float(bottom_right[0]),
                y2=float(bottom_right[1]),
            ),
            confidence=confidence,
            label=label,
        )

    @classmethod
    def from_xywh(
        cls,
        x: float,
        y: float,
        w: float,
        h: float,
        confidence: float = 1.0,
        label: Optional[str] = None,
    ) -> "Detection":
        """Create Detection from an (x, y, width, height) box."""
        return cls(
            bbox=BoundingBox.from_xywh(float(x), float(y), float(w), float(h)),
            confidence=confidence,
            label=label,
        )

    def to_dict(self) -> dict:
        return {
            "top_left": list(self.top_left),
            "bottom_right": list(self.bottom_right),
            "confidence": self.confidence,
            "label": self.label,
        }


@dataclass(frozen=True)
class DetectionSet:
    """
    The complete result of one inference.

    Instances are immutable and are swapped in as a whole, so a reader always
    sees every detection of one inference and nothing of another.

    Attributes:
        detections: Detections in source-frame pixel coordinates (order not significant).
        frame_index: Index of the frame the inference ran on (-1 for the empty initial set).
        completed_cycle: Display cycle during which the inference completed.
        latency_ms: Wall time of the inference call.
    """
    detections: Tuple[Detection, ...] = ()
    frame_index: int = -1
    completed_cycle: int = -1
    latency_ms: Optional[float] = None

    @classmethod
    def build(
        cls,
        detections: Iterable[Detection],
        frame_index: int,
        completed_cycle: int,
        latency_ms: Optional[float] = None,
    ) -> "DetectionSet":
        return cls(tuple(detections), frame_index, completed_cycle, latency_ms)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def to_numpy(self) -> np.ndarray:
        """Convert to an (N, 5) array of [x1, y1, x2, y2, confidence]."""
        if not self.detections:
            return np.zeros((0, 5), dtype=float)
        return np.array(
            [[d.bbox.x1, d.bbox.y1, d.bbox.x2, d.bbox.y2, d.confidence] for d in self.detections],
            dtype=float,
        )


EMPTY_DETECTIONS = DetectionSet()
