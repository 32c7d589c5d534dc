"""
Logging setup for annotation sessions.
"""

from __future__ import annotations

import logging
import os
from typing import List


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_path: str, log_level: str, console: bool = True) -> None:
    """
    Route session logs to a file and, optionally, the console.

    An empty log_path disables the file handler.
    """
    handlers: List[logging.Handler] = []
    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_path))
    if console or not handlers:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
