from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

APP_LOGGER = "stairwell_idle"
GAMEPLAY_LOGGER = "stairwell_idle.gameplay"

APP_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
GAMEPLAY_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


@dataclass(slots=True)
class AppLoggerBundle:
    app: logging.Logger
    gameplay: logging.Logger
    latest_log_path: Path
    gameplay_log_path: Path


def _archive_previous(logs_dir: Path, keep_archives: int) -> Path:
    """Moves an existing latest.log aside and prunes the oldest archives."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    latest = logs_dir / "latest.log"
    if latest.exists():
        latest.replace(logs_dir / f"latest_{datetime.now():%Y%m%d_%H%M%S_%f}.log")

    archives = sorted(
        (path for path in logs_dir.glob("latest_*.log") if path.is_file()),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for stale in archives[keep_archives:]:
        stale.unlink(missing_ok=True)
    return latest


def _reset(logger: logging.Logger, level: int) -> logging.Logger:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False
    return logger


def _file_handler(path: Path, fmt: str) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure_logging(
    logs_dir: Path,
    console: bool = True,
    level: int = logging.INFO,
    keep_archives: int = 5,
) -> AppLoggerBundle:
    latest = _archive_previous(logs_dir, keep_archives)
    gameplay_path = logs_dir / "gameplay.log"

    app_logger = _reset(logging.getLogger(APP_LOGGER), level)
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(APP_FORMAT))
        app_logger.addHandler(stream)
    app_logger.addHandler(_file_handler(latest, APP_FORMAT))

    # Event feed goes to its own file only.
    gameplay_logger = _reset(logging.getLogger(GAMEPLAY_LOGGER), logging.INFO)
    gameplay_logger.addHandler(_file_handler(gameplay_path, GAMEPLAY_FORMAT))

    return AppLoggerBundle(
        app=app_logger,
        gameplay=gameplay_logger,
        latest_log_path=latest,
        gameplay_log_path=gameplay_path,
    )
