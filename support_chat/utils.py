"""Shared helpers for the support chat service."""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "support_chat.log"


def setup_logging(log_dir: str, level: int = logging.INFO) -> Path:
    """Configure console and file logging.

    Handlers are attached to the root logger once; repeated calls only adjust
    the level. Returns the path of the log file.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(level)

    existing = {getattr(handler, "baseFilename", None) for handler in root.handlers}
    if os.path.abspath(log_file) in existing:
        return log_file

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.getLogger(__name__).debug("Logging initialised at %s", log_file)
    return log_file
