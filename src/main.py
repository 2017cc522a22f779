"""
Main application for the live face monitor.

Acquires the camera, loads the face detector once the first frame arrives and
overlays face bounding boxes on the live feed. The overlay and the pipeline
status are served over HTTP for the dashboard.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the overlay in a local window
    --no-web: Do not start the status/stream server
"""

import argparse
import asyncio
import logging
import os
import sys
import threading
from typing import Any, Dict, Optional, Tuple

import uvicorn
import yaml

from models.config import Config
from ops.logging import setup_logging
from pipeline.engine import create_pipeline_from_config
from web.app import create_app
from web.state import state as web_state


VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        merged = _read_yaml(os.path.join(config_dir, "default.yaml"))

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        merged = _deep_merge(merged, _read_yaml(local_overrides_path))

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    device_id = camera.get('device_id')
    if device_id is not None:
        if not isinstance(device_id, (int, str)) or isinstance(device_id, bool):
            return False, "camera.device_id must be an integer (index) or string (URL or file)"
        if isinstance(device_id, int) and device_id < 0:
            return False, "camera.device_id integer must be non-negative"

    if camera.get('facing', 'user') not in ('user', 'environment'):
        return False, "camera.facing must be one of: user, environment"

    if 'resolution' not in camera:
        return False, "Missing camera.resolution"
    resolution = camera['resolution']
    if not isinstance(resolution, list) or len(resolution) != 2:
        return False, "camera.resolution must be a list of [width, height]"
    if not all(isinstance(x, int) and x > 0 for x in resolution):
        return False, "camera.resolution values must be positive integers"

    fps = camera.get('fps', 30)
    if not isinstance(fps, int) or fps <= 0:
        return False, "camera.fps must be a positive integer"

    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"

    ready_timeout = camera.get('ready_timeout', 10.0)
    if not isinstance(ready_timeout, (int, float)) or ready_timeout <= 0:
        return False, "camera.ready_timeout must be a positive number"

    # Detection
    detection = config.get('detection') or {}
    model = detection.get('model', 'yunet')
    if model not in ('yunet', 'haar', 'yolo'):
        return False, "detection.model must be one of: yunet, haar, yolo"
    if detection.get('compute', 'auto') not in ('auto', 'cuda', 'opencl', 'cpu'):
        return False, "detection.compute must be one of: auto, cuda, opencl, cpu"
    if model == 'yolo' and not (detection.get('model_path') or detection.get('model_url')):
        return False, "detection.model_path is required when detection.model is 'yolo'"
    for key in ('score_threshold', 'nms_threshold'):
        if key in detection:
            value = detection[key]
            if not isinstance(value, (int, float)) or not (0 < value <= 1):
                return False, f"detection.{key} must be between 0 and 1"

    # Pipeline
    pipeline = config.get('pipeline') or {}
    refresh_hz = pipeline.get('refresh_hz', 30.0)
    if not isinstance(refresh_hz, (int, float)) or refresh_hz <= 0:
        return False, "pipeline.refresh_hz must be a positive number"

    # Web
    web = config.get('web') or {}
    port = web.get('port', 5000)
    if not isinstance(port, int) or not (0 < port < 65536):
        return False, "web.port must be a valid TCP port"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def start_web_server(host: str, port: int) -> threading.Thread:
    """Run the status/stream API in a daemon thread."""
    def run_web_app():
        uvicorn.run(
            create_app(),
            host=host,
            port=port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, name="web", daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on {host}:{port}")
    return web_thread


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Live Face Monitor')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show the overlay in a local window')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the status/stream server')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)
    logging.info("Starting Live Face Monitor")

    pipeline = create_pipeline_from_config(config, display=args.display or None)
    web_state.set_config(config)
    web_state.set_pipeline(pipeline)

    if config.web.enabled and not args.no_web:
        start_web_server(config.web.host, config.web.port)

    try:
        asyncio.run(pipeline.run())
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        pipeline.stop()

    status = pipeline.status_snapshot()
    if status.is_terminal:
        logging.error(f"Live Face Monitor stopped with error: {status.message}")
        sys.exit(1)
    logging.info("Live Face Monitor stopped")


if __name__ == "__main__":
    main()
