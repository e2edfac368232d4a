# app/utils/logger.py
"""
Centralised logging configuration for the whole backend.
Console output always; a rotating file under LOG_DIR when LOG_TO_FILE is on.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from app.config import settings

_configured = False


def _resolve_log_dir() -> str:
    if settings.LOG_DIR:
        return settings.LOG_DIR
    repo_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    return os.path.join(repo_root, "logs")


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    root.addHandler(console)

    if settings.LOG_TO_FILE:
        log_dir = _resolve_log_dir()
        os.makedirs(log_dir, exist_ok=True)
        # Keeps the last 10 × 5MB files; dispatch audits reach back a few weeks
        file_handler = RotatingFileHandler(
            filename=os.path.join(log_dir, "resqwave.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    # uvicorn access lines duplicate the timing middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
