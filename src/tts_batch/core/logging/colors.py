"""
ANSI colors for the console handler.

Plain output is used when stdout is not a terminal, when NO_COLOR is set
(https://no-color.org/) or when TTS_BATCH_NO_COLOR=1.
"""
from __future__ import annotations

import os
import sys


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAGS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
}

# Chunk statuses and run states share one palette
_STATES = {
    "completed": Colors.GREEN,
    "failed": Colors.RED,
    "aborted": Colors.RED,
    "generating": Colors.YELLOW,
    "running": Colors.YELLOW,
    "cooldown": Colors.CYAN,
    "paused": Colors.MAGENTA,
    "pending": Colors.GRAY,
    "idle": Colors.GRAY,
}


def supports_color() -> bool:
    if os.getenv("TTS_BATCH_NO_COLOR") == "1" or os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    if sys.platform == "win32":
        # Legacy consoles need VT processing switched on
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
        except (AttributeError, OSError):
            return False
    return True


# Refreshed by configure_logging()
USE_COLORS = supports_color()


def get_tag_color(tag: str) -> str:
    return _TAGS.get(tag.upper(), Colors.WHITE)


def get_status_color(status: str) -> str:
    """Color for a chunk status or run state; unknown values are dimmed."""
    return _STATES.get(str(status).lower(), Colors.DIM)
