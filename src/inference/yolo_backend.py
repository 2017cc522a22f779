"""
Ultralytics YOLO face detector backend.

Optional: needs the `yolo` extra (`pip install .[yolo]`) and a face-trained
YOLO checkpoint (e.g. yolov8n-face.pt). Runs on CUDA when torch sees a GPU,
otherwise on CPU.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

from models.detection import Detection
from models.errors import BackendInitError
from .backend import COMPUTE_TARGETS, ComputeTarget, InferenceBackend


def ultralytics_available() -> bool:
    try:
        import ultralytics  # noqa: F401  # type: ignore
    except ImportError:
        return False
    return True


def torch_cuda_available() -> bool:
    try:
        import torch  # type: ignore
    except ImportError:
        return False
    return bool(torch.cuda.is_available())


@dataclass(frozen=True)
class YoloFaceConfig:
    model: str
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    max_det: int = 50


class UltralyticsFaceBackend(InferenceBackend):
    def __init__(self, cfg: YoloFaceConfig, target: ComputeTarget = COMPUTE_TARGETS["cpu"]):
        self.cfg = cfg
        self.target = target
        try:
            from ultralytics import YOLO  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise BackendInitError(
                "Ultralytics is not installed. Install with `pip install .[yolo]` "
                "or switch detection.model to 'yunet'."
            ) from e

        self._model = YOLO(cfg.model)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        results = self._model.predict(
            source=frame,
            conf=self.cfg.conf_threshold,
            iou=self.cfg.iou_threshold,
            max_det=self.cfg.max_det,
            device=self.target.device,
            verbose=False,
        )
        if not results:
            return []

        boxes = getattr(results[0], "boxes", None)
        if boxes is None:
            return []

        xyxy = boxes.xyxy.cpu().numpy() if hasattr(boxes.xyxy, "cpu") else np.asarray(boxes.xyxy)
        conf = boxes.conf.cpu().numpy() if hasattr(boxes.conf, "cpu") else np.asarray(boxes.conf)

        return [
            Detection.from_corners((x1, y1), (x2, y2), confidence=float(c), label="face")
            for (x1, y1, x2, y2), c in zip(xyxy, conf)
        ]
