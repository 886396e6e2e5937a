"""Logging configuration for hosts embedding the pipeline.

Pipeline modules only create ``logging.getLogger(__name__)`` loggers. The host
decides where records go by calling :func:`setup_logging` once at start-up.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..services.settings import PipelineSettings

__all__ = ["LOG_FORMAT", "get_log_path", "log_directory", "setup_logging", "setup_logging_from_settings"]

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "inkflow.log"
LOG_DIR_ENV = "INKFLOW_LOG_DIR"
DEFAULT_LOG_DIR = Path.home() / ".inkflow" / "logs"

# Third-party loggers held at WARNING or above.
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio",)

_active_log_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Send log records to a rotating ``inkflow.log`` and, optionally, stderr.

    Later calls return the active log file without reconfiguring unless
    ``force`` is set. The directory defaults to ``$INKFLOW_LOG_DIR`` and then
    ``~/.inkflow/logs``.
    """

    global _active_log_path
    if _active_log_path is not None and not force:
        return _active_log_path

    directory = log_directory(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILE_NAME

    handlers = _build_handlers(log_path, console=console, max_bytes=max_bytes, backup_count=backup_count)
    for handler in handlers:
        handler.setLevel(level)
    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _active_log_path = log_path
    LOGGER.debug("Logging to %s at %s", log_path, logging.getLevelName(level))
    return log_path


def setup_logging_from_settings(settings: PipelineSettings, **kwargs) -> Path:
    """Configure logging at DEBUG when ``settings.debug_logging`` is on, INFO otherwise."""

    level = logging.DEBUG if settings.debug_logging else logging.INFO
    return setup_logging(level, **kwargs)


def get_log_path() -> Path | None:
    return _active_log_path


def log_directory(log_dir: Path | str | None = None) -> Path:
    if log_dir:
        return Path(log_dir).expanduser()
    override = os.environ.get(LOG_DIR_ENV)
    return Path(override).expanduser() if override else DEFAULT_LOG_DIR


def _build_handlers(log_path: Path, *, console: bool, max_bytes: int, backup_count: int) -> list[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers
