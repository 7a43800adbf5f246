"""
Logging state shared by the package: the active verbosity, whether
handlers are installed, and the request id of the current task.

The request id is a ContextVar so asyncio tasks spawned for a batch log
under the session that started them.
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict

import yaml

from .levels import LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_state: Dict[str, Any] = {"configured": False, "level": LogLevel.NORMAL}

# (config key, environment variable, converter)
_ENV_OVERRIDES = (
    ("level", "TTS_BATCH_LOG_LEVEL", str),
    ("log_dir", "TTS_BATCH_LOG_DIR", str),
    ("jsonl_file", "TTS_BATCH_JSONL_FILE", str),
    ("rotate_max_bytes", "TTS_BATCH_LOG_ROTATE_BYTES", int),
    ("rotate_backup_count", "TTS_BATCH_LOG_ROTATE_BACKUP", int),
)


def get_request_id() -> str:
    """Request id for the current context, or "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _state["level"]


def set_level(level: LogLevel) -> None:
    _state["level"] = level


def is_configured() -> bool:
    return _state["configured"]


def set_configured(value: bool) -> None:
    _state["configured"] = value


def _yaml_section() -> Dict[str, Any]:
    path = Path(os.getenv("TTS_BATCH_SETTINGS", "config/settings.yaml"))
    if not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        # Logging comes up before settings are validated; the settings
        # loader reports a broken file itself.
        return {}
    section = raw.get("logging") if isinstance(raw, dict) else None
    return dict(section) if isinstance(section, dict) else {}


def read_logging_config() -> Dict[str, Any]:
    """
    The ``logging`` section of settings.yaml with TTS_BATCH_* environment
    variables layered on top. Malformed numeric variables are ignored.
    """
    cfg = _yaml_section()
    for key, env, convert in _ENV_OVERRIDES:
        value = os.getenv(env)
        if not value:
            continue
        try:
            cfg[key] = convert(value)
        except ValueError:
            continue
    return cfg
