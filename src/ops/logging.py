"""
Logging setup.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_path: Optional[str], log_level: str, max_bytes: int = 5 * 1024 * 1024, backups: int = 3) -> None:
    """Log to stderr and, when log_path is set, to a rotating file."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(
            logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backups)
        )

    logging.basicConfig(
        level=getattr(logging, log_level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # uvicorn's per-request access log drowns out pipeline messages
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
