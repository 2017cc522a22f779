"""
Haar cascade face detector (CPU fallback).

Needs no downloaded weights: the frontal face cascade ships with opencv-python.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from models.detection import Detection
from models.errors import ModelLoadError
from .backend import InferenceBackend


DEFAULT_CASCADE = os.path.join(cv2.data.haarcascades, "haarcascade_frontalface_default.xml")


@dataclass(frozen=True)
class CascadeConfig:
    model: str = DEFAULT_CASCADE
    scale_factor: float = 1.1
    min_neighbors: int = 5
    min_face_size: int = 40


class HaarCascadeBackend(InferenceBackend):
    def __init__(self, cfg: CascadeConfig):
        self.cfg = cfg
        self._classifier = cv2.CascadeClassifier(cfg.model)
        if self._classifier.empty():
            raise ModelLoadError(f"failed to load cascade: {cfg.model}")

    def detect(self, frame: np.ndarray) -> List[Detection]:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        faces = self._classifier.detectMultiScale(
            gray,
            scaleFactor=self.cfg.scale_factor,
            minNeighbors=self.cfg.min_neighbors,
            minSize=(self.cfg.min_face_size, self.cfg.min_face_size),
        )
        return [Detection.from_xywh(x, y, w, h, label="face") for (x, y, w, h) in faces]
