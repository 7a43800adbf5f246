"""Tests for input validation helpers."""
from __future__ import annotations

import pytest

from tts_batch.services.validators import (
    MAX_CHUNK_TEXT,
    ValidationError,
    validate_admin_voice,
    validate_provider,
    validate_required,
    validate_text_length,
    validate_voice_field,
)


class TestRequired:

    @pytest.mark.parametrize("text,provider,code,field", [
        (None, "minimax", "TEXT_REQUIRED", "text"),
        ("  ", "minimax", "TEXT_REQUIRED", "text"),
        ("Hi", None, "PROVIDER_REQUIRED", "provider"),
        (None, None, "TEXT_REQUIRED", "text"),
    ])
    def test_missing(self, text, provider, code, field):
        with pytest.raises(ValidationError) as exc:
            validate_required(text, provider)
        assert exc.value.code == code
        assert exc.value.field == field

    def test_present(self):
        validate_required("Hi", "minimax")


class TestProviderAndLength:

    def test_known_provider(self):
        assert validate_provider("fishaudio") == "fishaudio"

    def test_unknown_provider(self):
        with pytest.raises(ValidationError, match="Unsupported provider: x"):
            validate_provider("x")

    def test_text_too_long(self):
        with pytest.raises(ValidationError) as exc:
            validate_text_length("a" * (MAX_CHUNK_TEXT + 1))
        assert exc.value.code == "TEXT_TOO_LONG"


class TestVoiceField:

    def test_strips(self):
        assert validate_voice_field({"minimaxVoiceId": "  v1 "}, "minimaxVoiceId", "MiniMax") == "v1"

    def test_missing_names_field_and_provider(self):
        with pytest.raises(ValidationError) as exc:
            validate_voice_field({"voice": "v1"}, "elevenLabsVoiceId", "ElevenLabs")
        assert exc.value.message == "Missing required field 'elevenLabsVoiceId' for ElevenLabs"
        assert exc.value.code == "VOICE_REQUIRED"

    def test_too_long(self):
        with pytest.raises(ValidationError) as exc:
            validate_voice_field({"f": "x" * 201}, "f", "P")
        assert exc.value.code == "VOICE_TOO_LONG"


class TestAdminVoice:

    def test_create_requires_all(self):
        with pytest.raises(ValidationError, match="Missing required field 'voice_id'"):
            validate_admin_voice({"name": "n", "provider": "minimax"})

    def test_create_drops_unknown_keys(self):
        record = validate_admin_voice({"voice_id": "v", "name": "n", "provider": "minimax", "id": 4})
        assert record == {"voice_id": "v", "name": "n", "provider": "minimax"}

    def test_partial(self):
        assert validate_admin_voice({"name": "n"}, partial=True) == {"name": "n"}

    def test_partial_empty(self):
        with pytest.raises(ValidationError) as exc:
            validate_admin_voice({}, partial=True)
        assert exc.value.code == "NOTHING_TO_UPDATE"

    def test_partial_bad_provider(self):
        with pytest.raises(ValidationError):
            validate_admin_voice({"provider": "acme"}, partial=True)
