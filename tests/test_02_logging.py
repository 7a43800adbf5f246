"""Tests for the structured logging package."""
from __future__ import annotations

import json
import logging

import pytest


class TestLogLevels:
    """LogLevel enum and coercion."""

    def test_level_enum_values(self):
        from tts_batch.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    @pytest.mark.parametrize("value,expected", [
        (1, 1), (4, 4), ("verbose", 3), ("DEBUG", 4), ("3", 3),
        ("INFO", 2), ("WARNING", 1), (logging.WARNING, 1), ("nonsense", 2), (None, 2),
    ])
    def test_coerce_level(self, value, expected):
        from tts_batch.core.logging import coerce_level

        assert coerce_level(value) == expected


class TestFormatters:
    """JSONL and console output."""

    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("tts-batch.test", logging.INFO, __file__, 1, "batch_started", None, None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_jsonl_line(self):
        from tts_batch.core.logging import JsonlFormatter

        record = self._record(tag="INFO", request_id="abc123", seconds=1.5,
                              extra_data={"batch": 1}, numeric_level=2)
        payload = json.loads(JsonlFormatter().format(record))
        assert payload["message"] == "batch_started"
        assert payload["request_id"] == "abc123"
        assert payload["seconds"] == 1.5
        assert payload["extra"] == {"batch": 1}
        assert payload["level"] == 2

    def test_jsonl_non_serializable_field(self):
        from tts_batch.core.logging import JsonlFormatter
        from tts_batch.tts.orchestrator import RunState

        record = self._record(extra_data={"state": RunState.PAUSED, "obj": object()})
        payload = json.loads(JsonlFormatter().format(record))
        assert "obj" in payload["extra"]

    def test_console_without_colors(self, monkeypatch):
        from tts_batch.core.logging import ColoredConsoleFormatter, colors

        monkeypatch.setattr(colors, "USE_COLORS", False)
        record = self._record(tag="SUCCESS", request_id="rid1", extra_data={"status": "completed"}, seconds=0.25)
        line = ColoredConsoleFormatter().format(record)
        assert "\033[" not in line
        assert "(rid1)" in line
        assert "status=completed" in line
        assert "0.250s" in line


class TestStatusColors:

    def test_status_colors(self):
        from tts_batch.core.logging import Colors, get_status_color

        assert get_status_color("completed") == Colors.GREEN
        assert get_status_color("failed") == Colors.RED
        assert get_status_color("paused") == Colors.MAGENTA
        assert get_status_color("unknown") == Colors.DIM


class TestRequestId:

    def test_set_and_get(self):
        from tts_batch.core.logging import get_request_id, set_request_id

        set_request_id("sess-1")
        assert get_request_id() == "sess-1"
        set_request_id("-")


class TestJsonlFile:
    """configure_logging() with a log directory writes JSON lines."""

    def test_writes_jsonl(self, tmp_path, monkeypatch):
        from tts_batch.core.logging import configure_logging, get_logger, info

        monkeypatch.setenv("TTS_BATCH_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("TTS_BATCH_JSONL_FILE", "test.jsonl")
        try:
            configure_logging(level=2, force=True)
            log = get_logger("tts-batch.test")
            info(log, "hello_file", chunk=3)
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = (tmp_path / "test.jsonl").read_text(encoding="utf-8").splitlines()
            entries = [json.loads(line) for line in lines]
            assert any(e["message"] == "hello_file" and e["extra"] == {"chunk": 3} for e in entries)
        finally:
            monkeypatch.delenv("TTS_BATCH_LOG_DIR")
            monkeypatch.delenv("TTS_BATCH_JSONL_FILE")
            for handler in logging.getLogger().handlers:
                handler.close()
            configure_logging(force=True)

    def test_level_filters_verbose(self, tmp_path, monkeypatch):
        from tts_batch.core.logging import configure_logging, get_logger, verbose

        monkeypatch.setenv("TTS_BATCH_LOG_DIR", str(tmp_path))
        try:
            configure_logging(level=2, force=True)
            verbose(get_logger("tts-batch.test"), "hidden_detail")
            for handler in logging.getLogger().handlers:
                handler.flush()
            path = tmp_path / "tts-batch.jsonl"
            content = path.read_text(encoding="utf-8") if path.exists() else ""
            assert "hidden_detail" not in content
        finally:
            monkeypatch.delenv("TTS_BATCH_LOG_DIR")
            for handler in logging.getLogger().handlers:
                handler.close()
            configure_logging(force=True)
