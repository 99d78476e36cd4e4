"""Logging bootstrap for the ``treedeck`` logger hierarchy."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "treedeck"
LOG_LEVEL_ENV = "TREEDECK_LOG_LEVEL"
LOG_FILE_ENV = "TREEDECK_LOG_FILE"


@dataclass(frozen=True)
class LoggingRuntime:
    level_name: str
    level: int
    file_path: str | None


_RUNTIME: LoggingRuntime | None = None


def _parse_level(raw: str | None) -> tuple[str, int]:
    normalized = str(raw or "WARNING").strip().upper()
    level = logging.getLevelName(normalized)
    if not isinstance(level, int):
        level = logging.WARNING
    return logging.getLevelName(level), level


def configure_logging(level: str | None = None, log_file: str | os.PathLike[str] | None = None) -> LoggingRuntime:
    """Attach stderr (and optional rotating file) handlers to ``treedeck``.

    Idempotent: later calls return the first configuration.
    """
    global _RUNTIME
    if _RUNTIME is not None:
        return _RUNTIME

    level_name, level_value = _parse_level(level or os.environ.get(LOG_LEVEL_ENV))
    file_value = log_file or os.environ.get(LOG_FILE_ENV) or None

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level_value)
    logger.propagate = False
    logger.handlers.clear()

    stream = logging.StreamHandler()
    stream.setLevel(level_value)
    stream.setFormatter(logging.Formatter("[%(name)s] %(levelname)s %(message)s"))
    logger.addHandler(stream)

    file_path: str | None = None
    if file_value:
        file_path = str(Path(file_value).expanduser())
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(file_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        handler.setLevel(level_value)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
        logger.addHandler(handler)

    _RUNTIME = LoggingRuntime(level_name=level_name, level=level_value, file_path=file_path)
    return _RUNTIME


def reset_logging() -> None:
    """Drop handlers installed by ``configure_logging`` (tests only)."""
    global _RUNTIME
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    _RUNTIME = None


__all__ = ["LoggingRuntime", "configure_logging", "reset_logging", "LOGGER_NAME"]
