"""
tts-batch Structured Logging.

Every log call names an event and attaches key=value fields:

    from tts_batch.core.logging import get_logger, info, warn, verbose

    log = get_logger("tts-batch.orchestrator")
    info(log, "batch_started", batch=1, chunks=5)
    warn(log, "outcome_duplicate", chunk=3)
    verbose(log, "chunk_completed", chunk=3, status="completed")

The active verbosity (1-4, see levels.py) filters calls before they reach
the stdlib logging machinery. Records go to a colored console handler and,
when a log directory is configured, to a rotating JSONL file.

Configuration:
    TTS_BATCH_LOG_LEVEL=3          verbosity (number or name)
    TTS_BATCH_LOG_DIR=logs         enables the JSONL file
    TTS_BATCH_NO_COLOR=1           plain console output

    settings.yaml:
        logging:
          level: 2
          log_dir: logs
          jsonl_file: tts-batch.jsonl

Field names ``event`` and ``seconds`` are lifted out of the extra fields
and rendered on their own.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from . import colors
from .colors import Colors, get_status_color
from .context import (
    get_level,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter
from .levels import LEVEL_MAP, LogLevel, coerce_level

_TRACE = logging.DEBUG - 10
_DEFAULT_JSONL = "tts-batch.jsonl"


def _console_handler(level: LogLevel) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LEVEL_MAP.get(level, logging.INFO))
    handler.setFormatter(ColoredConsoleFormatter())
    return handler


def _file_handler(config: Dict[str, Any]) -> logging.Handler:
    directory = Path(config["log_dir"])
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / str(config.get("jsonl_file") or _DEFAULT_JSONL),
        maxBytes=int(config.get("rotate_max_bytes", 10 * 1024 * 1024)),
        backupCount=int(config.get("rotate_backup_count", 5)),
        encoding="utf-8",
        delay=True,
    )
    # The file keeps everything the verbosity filter let through
    handler.setLevel(_TRACE)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install handlers on the root logger.

    Args:
        level: Verbosity override (1-4, name or LogLevel); otherwise taken
            from TTS_BATCH_LOG_LEVEL or settings.yaml.
        force: Replace handlers even if logging is already configured.
    """
    if is_configured() and not force:
        return

    colors.USE_COLORS = colors.supports_color()
    config = read_logging_config()
    active = coerce_level(level if level is not None else config.get("level", LogLevel.NORMAL))
    set_level(active)

    handlers = [_console_handler(active)]
    if config.get("log_dir"):
        handlers.append(_file_handler(config))

    root = logging.getLogger()
    root.setLevel(_TRACE)
    root.handlers = handlers
    set_configured(True)


def get_logger(name: str = "tts-batch") -> logging.Logger:
    """Named logger; logging is configured on first use."""
    configure_logging()
    return logging.getLogger(name)


def _emit(logger: logging.Logger, py_level: int, tag: str, verbosity: int, msg: str, fields: Dict[str, Any]) -> None:
    if verbosity > get_level():
        return
    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    logger.log(py_level, msg, extra={
        "tag": tag,
        "numeric_level": verbosity,
        "request_id": get_request_id(),
        "event": event,
        "seconds": seconds,
        "extra_data": fields or None,
    })


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "INFO", LogLevel.NORMAL, msg, fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "SUCCESS", LogLevel.NORMAL, msg, fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.WARNING, "WARN", LogLevel.NORMAL, msg, fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Shown even at MINIMAL verbosity."""
    _emit(logger, logging.ERROR, "ERROR", LogLevel.MINIMAL, msg, fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """A unit of work (chunk, batch) failed. Shown at MINIMAL verbosity."""
    _emit(logger, logging.ERROR, "FAIL", LogLevel.MINIMAL, msg, fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.DEBUG, "INFO", LogLevel.VERBOSE, msg, fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, _TRACE, "DEBUG", LogLevel.DEBUG, msg, fields)


__all__ = [
    "Colors",
    "ColoredConsoleFormatter",
    "JsonlFormatter",
    "LogLevel",
    "coerce_level",
    "colors",
    "configure_logging",
    "debug",
    "error",
    "fail",
    "get_logger",
    "get_request_id",
    "get_status_color",
    "info",
    "set_request_id",
    "success",
    "verbose",
    "warn",
]
