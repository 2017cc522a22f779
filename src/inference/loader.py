"""
Backend loader: picks a compute target and loads the face detection model.

The loader runs once per pipeline and only after the camera stream has
delivered its first frame, so a model is never loaded for a stream that never
materializes.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

import cv2
import httpx

from models.config import DetectionConfig
from models.errors import BackendInitError, ModelLoadError, PipelineError, ResourceUnavailable
from .backend import (
    COMPUTE_PREFERENCE,
    COMPUTE_TARGETS,
    ComputeTarget,
    InferenceBackend,
    describe_target,
    compute_target_available,
)
from .cascade_backend import DEFAULT_CASCADE, CascadeConfig, HaarCascadeBackend
from .yolo_backend import (
    UltralyticsFaceBackend,
    YoloFaceConfig,
    torch_cuda_available,
    ultralytics_available,
)
from .yunet_backend import YuNetBackend, YuNetConfig

if TYPE_CHECKING:
    from observation.media import MediaSource
    from pipeline.status import StatusTracker


DEFAULT_MODEL_URLS: Dict[str, str] = {
    "yunet": (
        "https://github.com/opencv/opencv_zoo/raw/main/models/"
        "face_detection_yunet/face_detection_yunet_2023mar.onnx"
    ),
}

# Compute targets each detector kind can run on
SUPPORTED_TARGETS: Dict[str, Tuple[str, ...]] = {
    "yunet": ("cuda", "opencl", "cpu"),
    "haar": ("cpu",),
    "yolo": ("cuda", "cpu"),
}


def _detector_supported(kind: str) -> bool:
    if kind == "yunet":
        return hasattr(cv2, "FaceDetectorYN")
    if kind == "haar":
        return hasattr(cv2, "CascadeClassifier")
    if kind == "yolo":
        return ultralytics_available()
    return False


def _default_target_check(kind: str, target: str) -> bool:
    if kind == "yolo" and target == "cuda":
        return torch_cuda_available()
    return compute_target_available(target)


class BackendLoader:
    """
    Selects a compute backend and loads the detection model, once.

    Example:
        loader = BackendLoader(detection_cfg, status)
        backend = await loader.load(media, ready_timeout=10)
    """

    def __init__(
        self,
        cfg: DetectionConfig,
        status: Optional["StatusTracker"] = None,
        target_check: Optional[Callable[[str, str], bool]] = None,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.cfg = cfg
        self.status = status
        self._target_check = target_check or _default_target_check
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(timeout=cfg.download_timeout, follow_redirects=True)
        )
        self._started = False
        self._abandoned = False
        self.target: Optional[ComputeTarget] = None
        self.backend: Optional[InferenceBackend] = None

    @property
    def started(self) -> bool:
        return self._started

    @property
    def loaded(self) -> bool:
        return self.backend is not None

    def abandon(self) -> None:
        """Drop any load in progress; its backend is never published."""
        self._abandoned = True

    async def load(self, media: "MediaSource", ready_timeout: Optional[float] = None) -> InferenceBackend:
        """
        Wait for the stream, then initialize the backend and load the model.

        On success the backend is published and status moves to active; on a
        loader failure status moves to error and the exception propagates.

        Raises:
            ResourceUnavailable: The stream never became ready, or the load was
                abandoned because the pipeline stopped.
            BackendInitError: No compatible compute backend.
            ModelLoadError: Weights could not be fetched or parsed.
            RuntimeError: load() was already called on this loader.
        """
        if self._started:
            raise RuntimeError("BackendLoader runs once per pipeline")
        self._started = True

        await media.wait_ready(ready_timeout)
        if self._abandoned_for(media):
            raise ResourceUnavailable("stream was released before model load")

        if self.status is not None:
            self.status.set_loading()
        logging.info(f"Loading face detector: model={self.cfg.model}, compute={self.cfg.compute}")

        try:
            target = self.initialize_backend()
            backend = await self.load_model(target)
        except (BackendInitError, ModelLoadError) as e:
            logging.error(f"Backend load failed: {e.describe()}")
            if self.status is not None and not self._abandoned_for(media):
                self.status.set_error(e)
            raise

        if self._abandoned_for(media):
            logging.info("Face detector load abandoned, pipeline was stopped")
            raise ResourceUnavailable("stream was released during model load")

        self.backend = backend
        if self.status is not None:
            self.status.set_active()
        logging.info(f"Face detector ready on {describe_target(target)}")
        return backend

    def _abandoned_for(self, media: "MediaSource") -> bool:
        return self._abandoned or media.is_released

    def initialize_backend(self) -> ComputeTarget:
        """
        Pick the compute target for the configured detector.

        Raises:
            BackendInitError: Unknown detector, missing library support, or no
                usable compute target.
        """
        kind = self.cfg.model
        if kind not in SUPPORTED_TARGETS:
            raise BackendInitError(f"unknown detector model '{kind}'")
        if not _detector_supported(kind):
            raise BackendInitError(f"detector '{kind}' is not supported by the installed libraries")

        supported = SUPPORTED_TARGETS[kind]
        if self.cfg.compute == "auto":
            candidates = [name for name in COMPUTE_PREFERENCE if name in supported]
        elif self.cfg.compute in supported:
            candidates = [self.cfg.compute]
        else:
            raise BackendInitError(f"detector '{kind}' cannot run on compute '{self.cfg.compute}'")

        for name in candidates:
            if self._target_check(kind, name):
                self.target = COMPUTE_TARGETS[name]
                logging.info(f"Compute backend selected: {describe_target(self.target)}")
                return self.target
            logging.info(f"Compute backend '{name}' unavailable on this host")

        raise BackendInitError(f"no compatible compute backend for '{kind}' (tried {', '.join(candidates)})")

    async def load_model(self, target: ComputeTarget) -> InferenceBackend:
        """
        Resolve weights and build the detector off the event loop.

        Raises:
            ModelLoadError: Download, file or parse failure.
        """
        try:
            weights = await self._resolve_weights()
        except PipelineError:
            raise
        except Exception as e:
            raise ModelLoadError(f"failed to fetch {self.cfg.model} model weights: {e}") from e

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._build_backend, target, weights)
        except PipelineError:
            raise
        except Exception as e:
            raise ModelLoadError(f"failed to load {self.cfg.model} model from {weights}: {e}") from e

    def _build_backend(self, target: ComputeTarget, weights: str) -> InferenceBackend:
        cfg = self.cfg
        if cfg.model == "yunet":
            return YuNetBackend(
                YuNetConfig(
                    model=weights,
                    score_threshold=cfg.score_threshold,
                    nms_threshold=cfg.nms_threshold,
                    top_k=cfg.top_k,
                    min_face_size=cfg.min_face_size,
                ),
                target,
            )
        if cfg.model == "haar":
            return HaarCascadeBackend(CascadeConfig(model=weights, min_face_size=cfg.min_face_size))
        return UltralyticsFaceBackend(
            YoloFaceConfig(
                model=weights,
                conf_threshold=cfg.score_threshold,
                iou_threshold=cfg.nms_threshold,
                max_det=cfg.top_k,
            ),
            target,
        )

    async def _resolve_weights(self) -> str:
        cfg = self.cfg
        if cfg.model_path:
            if os.path.exists(cfg.model_path):
                return cfg.model_path
            if not cfg.model_url:
                raise ModelLoadError(f"model file not found: {cfg.model_path}")

        url = cfg.model_url or DEFAULT_MODEL_URLS.get(cfg.model)
        if url is None:
            if cfg.model == "haar":
                return DEFAULT_CASCADE
            raise ModelLoadError(f"detection.model_path or detection.model_url is required for '{cfg.model}'")

        dest = cfg.model_path or os.path.join(cfg.cache_dir, os.path.basename(url.split("?", 1)[0]))
        if os.path.exists(dest):
            logging.info(f"Using cached model weights: {dest}")
            return dest
        await self._download(url, dest)
        return dest

    async def _download(self, url: str, dest: str) -> None:
        """Stream url into dest; a partial download never lands at dest."""
        logging.info(f"Downloading model weights: {url}")
        tmp_path = dest + ".part"
        try:
            os.makedirs(os.path.dirname(dest) or ".", exist_ok=True)
            async with self._http_client_factory() as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(tmp_path, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
            os.replace(tmp_path, dest)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, OSError) as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ModelLoadError(f"failed to download {url}: {e}") from e
        logging.info(f"Model weights saved: {dest}")
