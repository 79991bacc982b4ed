"""Logging configuration: stderr plus combined and error log files."""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("context_extender")


def setup_logging(level: int | None = None, log_dir: Path | None = None) -> None:
    """Log to stderr, plus ``combined.log`` and ``error.log`` under ``log_dir``.

    Without an explicit level, ``CONTEXT_EXTENDER_LOG_LEVEL`` is used (default WARNING).
    """
    if level is None:
        level_name = os.environ.get("CONTEXT_EXTENDER_LOG_LEVEL", "WARNING").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.WARNING

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "combined.log", encoding="utf-8"))
        error_handler = logging.FileHandler(log_dir / "error.log", encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


@contextmanager
def log_duration(operation: str, **fields: Any) -> Iterator[None]:
    """Log how long the wrapped block took, at INFO."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        extra = " ".join(f"{k}={v}" for k, v in fields.items())
        logger.info("Performance: %s took %dms %s", operation, elapsed_ms, extra)
