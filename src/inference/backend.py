"""
Inference backend interface and compute target selection.

Backends return pixel-space detections in the original frame coordinate system.
They are created once by the loader and only read afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import cv2
import numpy as np

from models.detection import Detection


class InferenceBackend(Protocol):
    def detect(self, frame: np.ndarray) -> List[Detection]:
        ...


@dataclass(frozen=True)
class ComputeTarget:
    """
    Numeric compute substrate a detector runs on.

    Attributes:
        name: "cuda", "opencl" or "cpu".
        dnn_backend: cv2.dnn backend id for OpenCV DNN based detectors.
        dnn_target: cv2.dnn target id for OpenCV DNN based detectors.
        device: Torch-style device string for Ultralytics detectors.
        accelerated: False for the plain CPU fallback.
    """
    name: str
    dnn_backend: int
    dnn_target: int
    device: str
    accelerated: bool


COMPUTE_TARGETS: Dict[str, ComputeTarget] = {
    "cuda": ComputeTarget(
        name="cuda",
        dnn_backend=getattr(cv2.dnn, "DNN_BACKEND_CUDA", 5),
        dnn_target=getattr(cv2.dnn, "DNN_TARGET_CUDA", 6),
        device="cuda:0",
        accelerated=True,
    ),
    "opencl": ComputeTarget(
        name="opencl",
        dnn_backend=cv2.dnn.DNN_BACKEND_OPENCV,
        dnn_target=cv2.dnn.DNN_TARGET_OPENCL,
        device="cpu",
        accelerated=True,
    ),
    "cpu": ComputeTarget(
        name="cpu",
        dnn_backend=cv2.dnn.DNN_BACKEND_OPENCV,
        dnn_target=cv2.dnn.DNN_TARGET_CPU,
        device="cpu",
        accelerated=False,
    ),
}

# Preference order when compute is "auto"
COMPUTE_PREFERENCE: Tuple[str, ...] = ("cuda", "opencl", "cpu")


def cuda_available() -> bool:
    cuda = getattr(cv2, "cuda", None)
    if cuda is None:
        return False
    try:
        return cuda.getCudaEnabledDeviceCount() > 0
    except cv2.error as e:
        logging.debug(f"CUDA availability check failed: {e}")
        return False


def opencl_available() -> bool:
    try:
        return bool(cv2.ocl.haveOpenCL())
    except cv2.error as e:
        logging.debug(f"OpenCL availability check failed: {e}")
        return False


def compute_target_available(name: str) -> bool:
    """Return True if the named compute target is usable on this host."""
    if name == "cuda":
        return cuda_available()
    if name == "opencl":
        return opencl_available()
    return name == "cpu"


def describe_target(target: Optional[ComputeTarget]) -> str:
    if target is None:
        return "none"
    kind = "accelerated" if target.accelerated else "fallback"
    return f"{target.name} ({kind})"
