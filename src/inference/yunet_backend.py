"""
YuNet face detector backend (OpenCV DNN).

Runs on any OpenCV DNN compute target: CUDA when OpenCV was built with it,
OpenCL, or the plain CPU fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from models.detection import Detection
from .backend import COMPUTE_TARGETS, ComputeTarget, InferenceBackend


@dataclass(frozen=True)
class YuNetConfig:
    model: str
    score_threshold: float = 0.6
    nms_threshold: float = 0.3
    top_k: int = 50
    min_face_size: int = 0


class YuNetBackend(InferenceBackend):
    def __init__(self, cfg: YuNetConfig, target: ComputeTarget = COMPUTE_TARGETS["cpu"]):
        self.cfg = cfg
        self.target = target
        self._input_size: Tuple[int, int] = (320, 320)
        self._detector = cv2.FaceDetectorYN.create(
            cfg.model,
            "",
            self._input_size,
            cfg.score_threshold,
            cfg.nms_threshold,
            cfg.top_k,
            target.dnn_backend,
            target.dnn_target,
        )

    def detect(self, frame: np.ndarray) -> List[Detection]:
        h, w = frame.shape[:2]
        if (w, h) != self._input_size:
            self._detector.setInputSize((w, h))
            self._input_size = (w, h)

        _, faces = self._detector.detect(frame)
        return self._to_detections(faces)

    def _to_detections(self, faces: Optional[np.ndarray]) -> List[Detection]:
        if faces is None or len(faces) == 0:
            return []

        out: List[Detection] = []
        # Row layout: x, y, w, h, 5 landmark pairs, score
        for row in faces:
            x, y, bw, bh = (float(v) for v in row[:4])
            if min(bw, bh) < self.cfg.min_face_size:
                continue
            out.append(Detection.from_xywh(x, y, bw, bh, confidence=float(row[-1]), label="face"))
        return out
