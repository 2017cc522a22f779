"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


# Device index used for each facing mode when camera.device_id is not set.
FACING_DEVICE_INDEX = {
    "user": 0,
    "environment": 1,
}


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Optional[Union[int, str]] = None
    facing: str = "user"
    resolution: List[int] = field(default_factory=lambda: [640, 480])
    fps: int = 30
    ready_timeout: float = 10.0
    max_consecutive_failures: int = 30
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @property
    def width(self) -> int:
        return int(self.resolution[0])

    @property
    def height(self) -> int:
        return int(self.resolution[1])

    def resolve_device(self) -> Union[int, str]:
        """Explicit device_id wins; otherwise map the facing mode to a device index."""
        if self.device_id is not None:
            return self.device_id
        return FACING_DEVICE_INDEX.get(self.facing, 0)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id"),
            facing=d.get("facing", "user"),
            resolution=list(d.get("resolution", [640, 480])),
            fps=d.get("fps", 30),
            ready_timeout=float(d.get("ready_timeout", 10.0)),
            max_consecutive_failures=d.get("max_consecutive_failures", 30),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0) or 0,
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "facing": self.facing,
            "resolution": self.resolution,
            "fps": self.fps,
            "ready_timeout": self.ready_timeout,
            "max_consecutive_failures": self.max_consecutive_failures,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class DetectionConfig:
    """Face detector and compute backend configuration."""
    model: str = "yunet"
    compute: str = "auto"
    model_path: Optional[str] = None
    model_url: Optional[str] = None
    cache_dir: str = "models"
    score_threshold: float = 0.6
    nms_threshold: float = 0.3
    top_k: int = 50
    min_face_size: int = 40
    download_timeout: float = 30.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            model=d.get("model", "yunet"),
            compute=d.get("compute", "auto"),
            model_path=d.get("model_path"),
            model_url=d.get("model_url"),
            cache_dir=d.get("cache_dir", "models"),
            score_threshold=float(d.get("score_threshold", 0.6)),
            nms_threshold=float(d.get("nms_threshold", 0.3)),
            top_k=int(d.get("top_k", 50)),
            min_face_size=int(d.get("min_face_size", 40)),
            download_timeout=float(d.get("download_timeout", 30.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "model": self.model,
            "compute": self.compute,
            "cache_dir": self.cache_dir,
            "score_threshold": self.score_threshold,
            "nms_threshold": self.nms_threshold,
            "top_k": self.top_k,
            "min_face_size": self.min_face_size,
            "download_timeout": self.download_timeout,
        }
        if self.model_path is not None:
            d["model_path"] = self.model_path
        if self.model_url is not None:
            d["model_url"] = self.model_url
        return d


@dataclass
class OverlayConfig:
    """Overlay drawing options (colors are BGR)."""
    box_color: List[int] = field(default_factory=lambda: [0, 255, 0])
    thickness: int = 2
    show_live_badge: bool = True
    show_count: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OverlayConfig":
        return cls(
            box_color=list(d.get("box_color", [0, 255, 0])),
            thickness=int(d.get("thickness", 2)),
            show_live_badge=d.get("show_live_badge", True),
            show_count=d.get("show_count", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "box_color": self.box_color,
            "thickness": self.thickness,
            "show_live_badge": self.show_live_badge,
            "show_count": self.show_count,
        }


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        refresh_hz: Display cycles per second driven by the cycle trigger.
        stats_log_interval: Seconds between status log messages.
        display: Show the overlay in a local OpenCV window.
    """
    refresh_hz: float = 30.0
    stats_log_interval: float = 60.0
    display: bool = False

    @property
    def cycle_interval(self) -> float:
        return 1.0 / self.refresh_hz

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineConfig":
        return cls(
            refresh_hz=float(d.get("refresh_hz", 30.0)),
            stats_log_interval=float(d.get("stats_log_interval", 60.0)),
            display=d.get("display", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refresh_hz": self.refresh_hz,
            "stats_log_interval": self.stats_log_interval,
            "display": self.display,
        }


@dataclass
class WebConfig:
    """Status API / MJPEG server configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000
    stream_fps: int = 10

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=int(d.get("port", 5000)),
            stream_fps=int(d.get("stream_fps", 10)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
            "stream_fps": self.stream_fps,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: Optional[str] = "logs/face_monitor.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            overlay=OverlayConfig.from_dict(d.get("overlay", {}) or {}),
            pipeline=PipelineConfig.from_dict(d.get("pipeline", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/face_monitor.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "overlay": self.overlay.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
