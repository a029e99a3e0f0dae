"""Project-wide logger: stderr plus an optional rotating file under settings.log_dir."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from cipherlang.config.settings import settings


LOG_FILE_NAME = "cipherlang.log"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 10
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def resolve_level(raw: str | None) -> int:
    return _LEVELS.get(str(raw or "INFO").strip().upper(), logging.INFO)


def _file_handler(level: int, formatter: logging.Formatter) -> logging.Handler | None:
    if not settings.log_to_file:
        return None
    log_dir = Path(settings.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError:
        # unwritable log dir, keep stderr only
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _build_logger() -> logging.Logger:
    root = logging.getLogger("cipherlang")
    if root.handlers:
        return root

    level = resolve_level(settings.log_level)
    root.setLevel(level)
    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = _file_handler(level, formatter)
    if file_handler is not None:
        root.addHandler(file_handler)

    root.propagate = False
    return root


logger = _build_logger()
