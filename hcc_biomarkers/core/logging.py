# hcc_biomarkers/core/logging.py
"""Logging configuration for the HCC biomarker pipeline.

Every logger obtained through `setup_logging` writes to the same two sinks:
a rich console handler on stderr and one rotating log file per day under the
configured logs directory. Both sinks are created once and shared, so
`set_log_level` can retune the whole pipeline (e.g. for ``--verbose``).
"""

import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import rich.traceback
from rich.console import Console
from rich.logging import RichHandler

from hcc_biomarkers.core.config import get_logging_config, get_path

LOG_FILE_PREFIX = "hcc_biomarkers"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_shared_handlers: list[logging.Handler] | None = None
_configured_loggers: dict[str, logging.Logger] = {}


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(str(level_name).upper())
    if isinstance(level, int):
        return level
    logging.getLogger(__name__).warning(f"Unknown log level '{level_name}', using INFO.")
    return logging.INFO


def _open_log_file(logs_dir: Path, level: int, log_format: str) -> logging.Handler | None:
    """Daily rotating file in `logs_dir`; None when the directory is unusable."""
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(tz=UTC).strftime("%Y-%m-%d")
        handler = RotatingFileHandler(
            logs_dir / f"{LOG_FILE_PREFIX}_{stamp}.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
    except OSError as e:
        logging.getLogger(__name__).warning(f"File logging disabled, cannot write to {logs_dir}: {e}")
        return None
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format, datefmt=DATE_FORMAT))
    return handler


def _build_handlers(config: dict, logs_dir: Path, level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if config.get("console_logging", True):
        handlers.append(
            RichHandler(
                level=level,
                console=Console(stderr=True),
                show_path=False,
                markup=True,
                rich_tracebacks=True,
            )
        )
    if config.get("file_logging", True):
        file_handler = _open_log_file(logs_dir, level, config["log_format"])
        if file_handler is not None:
            handlers.append(file_handler)
    if not handlers:
        fallback = logging.StreamHandler(sys.stderr)
        fallback.setLevel(level)
        fallback.setFormatter(logging.Formatter(config["log_format"], datefmt=DATE_FORMAT))
        handlers.append(fallback)
    return handlers


def setup_logging(module_name: str | None = None) -> logging.Logger:
    """Return a configured logger for `module_name` (the project root logger by default)."""
    global _shared_handlers

    config = get_logging_config()
    level = _resolve_level(config["level"])
    if _shared_handlers is None:
        _shared_handlers = _build_handlers(config, get_path("logs_dir"), level)
        rich.traceback.install(show_locals=False)

    name = module_name or config["root_logger_name"]
    logger_instance = logging.getLogger(name)
    logger_instance.handlers.clear()
    for handler in _shared_handlers:
        logger_instance.addHandler(handler)
    logger_instance.setLevel(level)
    logger_instance.propagate = False
    _configured_loggers[name] = logger_instance
    return logger_instance


def set_log_level(level: int | str) -> None:
    """Apply `level` to every logger from `setup_logging` and to the shared handlers."""
    numeric = level if isinstance(level, int) else _resolve_level(level)
    for logger_instance in _configured_loggers.values():
        logger_instance.setLevel(numeric)
    for handler in _shared_handlers or []:
        handler.setLevel(numeric)


# Project root logger; core modules log through its children
logger = setup_logging()
