"""
Inference layer: face detector backends and the loader that builds them.
"""

from .backend import COMPUTE_TARGETS, ComputeTarget, InferenceBackend, compute_target_available
from .loader import BackendLoader

__all__ = [
    "BackendLoader",
    "COMPUTE_TARGETS",
    "ComputeTarget",
    "InferenceBackend",
    "compute_target_available",
]
