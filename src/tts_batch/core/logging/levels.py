"""
Verbosity levels.

    1 MINIMAL  failures, startup and shutdown
    2 NORMAL   session and batch lifecycle (default)
    3 VERBOSE  one line per chunk
    4 DEBUG    vendor request detail
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


# Console handler threshold for each verbosity
LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.NOTSET + 1,
}

_ALIASES = {
    "TRACE": LogLevel.DEBUG,
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Turn a verbosity number, a level name or a stdlib logging constant into
    a LogLevel. Anything unrecognised means NORMAL.

        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            value = int(name)
        elif name in LogLevel.__members__:
            return LogLevel[name]
        else:
            return _ALIASES.get(name, LogLevel.NORMAL)

    if isinstance(value, bool) or not isinstance(value, int):
        return LogLevel.NORMAL
    if LogLevel.MINIMAL <= value <= LogLevel.DEBUG:
        return LogLevel(value)
    if value >= logging.WARNING:
        return LogLevel.MINIMAL
    return LogLevel.NORMAL if value >= logging.INFO else LogLevel.DEBUG
