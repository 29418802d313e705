"""Logging helpers for the acme-treesitter daemon."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_log_path"]

_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "tenacity")
_LOG_FILENAME = "acme-treesitter.log"
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path | None:
    """Configure root logging: stderr console plus an optional rotating file.

    Returns the log file path when file logging is enabled.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force:
        return _LOG_PATH

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    log_path: Path | None = None
    target_dir = _resolve_log_dir(log_dir)
    if target_dir is not None:
        target_dir.mkdir(parents=True, exist_ok=True)
        log_path = target_dir / _LOG_FILENAME
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if console or not handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_external_loggers(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path | None:
    candidate = log_dir or os.environ.get("ACME_TREESITTER_LOG_DIR")
    return Path(candidate).expanduser() if candidate else None


def _tune_external_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
