"""
Input Validation for Chunk Synthesis.

Validation runs before any vendor call, in this order:
    1. text and provider present
    2. provider is registered
    3. the provider's voice field is present
    4. the provider's credentials are configured (checked by the service)

Error Handling:
    Functions raise ValidationError carrying:
        - message: Human-readable, names the offending field
        - code: Machine-readable ("TEXT_REQUIRED", "VOICE_REQUIRED", ...)
        - field: Request field name, when one is at fault

Usage:
    from tts_batch.services.validators import validate_required, ValidationError

    try:
        validate_required(req.text, req.provider)
    except ValidationError as e:
        return error_response(e.code, e.message)
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from tts_batch.core.logging import debug, get_logger
from tts_batch.tts.provider import is_known_provider

_LOG = get_logger("tts-batch.validators")

# Upper bound for one chunk; the largest provider chunk size with headroom
MAX_CHUNK_TEXT = 10_000
MAX_VOICE_ID_LENGTH = 200


class ValidationError(Exception):
    """
    Raised when request input fails validation.

    Example:
        >>> raise ValidationError("Missing required field 'minimaxVoiceId' for MiniMax",
        ...                       "VOICE_REQUIRED", field="minimaxVoiceId")
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", field: Optional[str] = None):
        self.message = message
        self.code = code
        self.field = field
        super().__init__(message)


def validate_required(text: Optional[str], provider: Optional[str]) -> None:
    """
    Check that text and provider are present.

    Raises:
        ValidationError: TEXT_REQUIRED / PROVIDER_REQUIRED
    """
    missing = []
    if not text or not text.strip():
        missing.append("text")
    if not provider:
        missing.append("provider")
    if missing:
        debug(_LOG, "validation_failed", missing=missing)
        raise ValidationError(
            "Missing required fields: text and provider are required",
            "TEXT_REQUIRED" if "text" in missing else "PROVIDER_REQUIRED",
            field=missing[0],
        )


def validate_provider(provider: str) -> str:
    """
    Raises:
        ValidationError: UNSUPPORTED_PROVIDER
    """
    if not is_known_provider(provider):
        raise ValidationError(f"Unsupported provider: {provider}", "UNSUPPORTED_PROVIDER", field="provider")
    return provider


def validate_text_length(text: str, max_length: int = MAX_CHUNK_TEXT) -> str:
    """
    Raises:
        ValidationError: TEXT_TOO_LONG
    """
    if len(text) > max_length:
        raise ValidationError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            "TEXT_TOO_LONG",
            field="text",
        )
    return text


def validate_voice_field(
    payload: Mapping[str, Any],
    voice_field: str,
    display_name: str,
    max_length: int = MAX_VOICE_ID_LENGTH,
) -> str:
    """
    Extract the provider-specific voice id from a request mapping.

    Args:
        payload: Request fields keyed by wire name.
        voice_field: Wire name of the voice id (e.g. "fishAudioVoiceId").
        display_name: Provider name used in the message.

    Returns:
        The voice id.

    Raises:
        ValidationError: VOICE_REQUIRED / VOICE_TOO_LONG
    """
    voice_id = payload.get(voice_field)
    if not voice_id or not str(voice_id).strip():
        raise ValidationError(
            f"Missing required field '{voice_field}' for {display_name}",
            "VOICE_REQUIRED",
            field=voice_field,
        )
    voice_id = str(voice_id).strip()
    if len(voice_id) > max_length:
        raise ValidationError(
            f"'{voice_field}' exceeds maximum length ({len(voice_id)} > {max_length})",
            "VOICE_TOO_LONG",
            field=voice_field,
        )
    return voice_id


def validate_admin_voice(payload: Mapping[str, Any], partial: bool = False) -> dict:
    """
    Validate a custom voice record.

    Args:
        payload: Fields from the request.
        partial: Accept any subset (update) instead of requiring all (create).

    Returns:
        Dict with only voice_id/name/provider keys.

    Raises:
        ValidationError: FIELD_REQUIRED / UNSUPPORTED_PROVIDER / NOTHING_TO_UPDATE
    """
    fields = ("voice_id", "name", "provider")
    record = {k: payload.get(k) for k in fields if payload.get(k) is not None}

    if not partial:
        for name in fields:
            if not record.get(name):
                raise ValidationError(f"Missing required field '{name}'", "FIELD_REQUIRED", field=name)
    elif not record:
        raise ValidationError("No fields to update", "NOTHING_TO_UPDATE")

    if "provider" in record:
        validate_provider(record["provider"])
    return record
