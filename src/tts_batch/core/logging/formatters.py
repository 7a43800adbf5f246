"""
Record formatters for the two handlers.

JSONL (file):
    {"ts": "2026-01-15T14:30:05+03:00", "level": 2, "tag": "INFO", "message": "batch_started",
     "request_id": "abc123", "extra": {"batch": 1, "chunks": 5}}

Console:
    14:30:05 [ INFO  ] (abc123) batch_started batch=1 chunks=5
    14:30:09 [SUCCESS] (abc123) chunk_completed chunk=3 status=completed 3.812s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from . import colors
from .colors import Colors, get_status_color, get_tag_color

# Fixed colors for well-known field names
_FIELD_COLORS = {
    "provider": Colors.MAGENTA,
    "error": Colors.RED,
    "event": Colors.BLUE,
}


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Structured attributes attached by the level helpers."""
    return {
        "tag": getattr(record, "tag", record.levelname),
        "level": getattr(record, "numeric_level", 2),
        "request_id": getattr(record, "request_id", "-"),
        "event": getattr(record, "event", None),
        "seconds": getattr(record, "seconds", None),
        "extra": getattr(record, "extra_data", None) or {},
    }


class JsonlFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        f = _fields(record)
        line: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": f["level"],
            "tag": f["tag"],
            "message": record.getMessage(),
            "request_id": f["request_id"],
        }
        if f["event"]:
            line["event"] = f["event"]
        if f["seconds"] is not None:
            line["seconds"] = f["seconds"]
        if f["extra"]:
            line["extra"] = f["extra"]
        return json.dumps(line, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """``HH:MM:SS [ TAG ] (rid) message key=value 0.123s``"""

    def format(self, record: logging.LogRecord) -> str:
        f = _fields(record)
        out: List[str] = [
            self._paint(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), Colors.DIM),
            self._paint(f"[{f['tag']:^7}]", get_tag_color(f["tag"])),
        ]
        if f["request_id"] != "-":
            out.append(self._paint(f"({f['request_id']})", Colors.CYAN))
        out.append(record.getMessage())

        pairs = dict(f["extra"])
        if f["event"]:
            pairs = {"event": f["event"], **pairs}
        out.extend(self._paint(f"{k}={v}", self._color_for(k, v)) for k, v in pairs.items())

        if f["seconds"] is not None:
            out.append(self._paint(f"{f['seconds']:.3f}s", self._elapsed_color(f["seconds"])))
        return " ".join(out)

    @staticmethod
    def _paint(text: str, color: Optional[str]) -> str:
        if not colors.USE_COLORS or not color:
            return text
        return color + text + Colors.RESET

    @staticmethod
    def _color_for(key: str, value: Any) -> str:
        if key in ("status", "state"):
            return get_status_color(value)
        return _FIELD_COLORS.get(key, Colors.DIM)

    @staticmethod
    def _elapsed_color(seconds: float) -> str:
        # Thresholds sized for vendor round trips
        for limit, color in ((1.0, Colors.GREEN), (10.0, Colors.YELLOW)):
            if seconds < limit:
                return color
        return Colors.RED
