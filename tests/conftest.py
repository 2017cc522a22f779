"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  facing: "user"
  resolution: [640, 480]
  fps: 30

detection:
  model: "yunet"
  compute: "auto"
  score_threshold: 0.6

pipeline:
  refresh_hz: 30

web:
  port: 5000

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "facing": "user",
            "resolution": [1280, 720],
            "fps": 30,
            "ready_timeout": 5.0,
        },
        "detection": {
            "model": "yunet",
            "compute": "auto",
            "score_threshold": 0.6,
            "nms_threshold": 0.3,
        },
        "pipeline": {
            "refresh_hz": 30,
        },
        "web": {
            "enabled": True,
            "port": 5000,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
