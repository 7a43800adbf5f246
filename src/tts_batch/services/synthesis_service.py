"""
SynthesisService - Single-Chunk Synthesis.

One request, one chunk, one vendor call. The service is stateless apart
from the cached provider adapters: nothing about a chunk outlives the
call that produced it.

Pipeline:
    Validate → Resolve provider → Check credentials → Vendor call → Encode

Validation Order:
    1. text and provider present           → InvalidInputError (400)
    2. provider registered                 → InvalidInputError (400)
    3. provider-specific voice field       → InvalidInputError (400)
    4. provider credentials configured     → CredentialsError (500)
    No vendor call is made when any of these fail.

Error Handling:
    - TTSError: Base exception with ErrorCode and chunk index in details
    - InvalidInputError: Missing/invalid request field
    - CredentialsError: Provider credentials absent
    - VendorError: Vendor non-2xx, malformed payload or transport failure
    - VendorTimeoutError: Vendor did not answer in time
    - SynthesisError: Anything else

Example:
    >>> service = SynthesisService(settings)
    >>> audio = asyncio.run(service.synthesize_chunk(ChunkRequest(
    ...     text="Hello there.", provider="minimax", voice="Wise_Woman",
    ...     provider_fields={"minimaxVoiceId": "Wise_Woman"},
    ... )))
    >>> audio.filename
    'minimax-Wise_Woman-chunk0-1760870400000.mp3'
"""
from __future__ import annotations

import base64
import math
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from tts_batch.core.config import Defaults, Settings
from tts_batch.core.logging import fail, get_logger, info, success, verbose
from tts_batch.core.metrics import metrics
from tts_batch.services.validators import (
    ValidationError,
    validate_provider,
    validate_required,
    validate_text_length,
    validate_voice_field,
)
from tts_batch.tts.provider import (
    BaseProvider,
    CredentialsMissingError,
    ProviderConfig,
    ProviderError,
    get_provider,
    known_providers,
)
from tts_batch.utils.timeit import timeit

_LOG = get_logger("tts-batch.service")

_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9]")

# Provider-specific request fields
PROVIDER_FIELDS = (
    "elevenLabsVoiceId",
    "fishAudioVoiceId",
    "fishAudioModel",
    "minimaxVoiceId",
    "minimaxModel",
)


# =============================================================================
# Error Codes and Exceptions
# =============================================================================

class ErrorCode:
    """Error codes returned in API error bodies."""
    INVALID_INPUT = "INVALID_INPUT"                 # Missing/invalid field
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"   # Unknown provider id
    CREDENTIALS_MISSING = "CREDENTIALS_MISSING"     # Vendor key not configured
    VENDOR_ERROR = "VENDOR_ERROR"                   # Vendor/transport failure
    TIMEOUT = "TIMEOUT"                             # Vendor took too long
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"           # Unexpected failure
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status per error code
STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNSUPPORTED_PROVIDER: 400,
    ErrorCode.CREDENTIALS_MISSING: 500,
    ErrorCode.VENDOR_ERROR: 502,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.SYNTHESIS_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


class TTSError(Exception):
    """
    Base exception for synthesis errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Extra context; "chunkIndex" is always present for chunk calls.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        """Error body for API responses."""
        result: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        result.update(self.details)
        return result


class InvalidInputError(TTSError):
    """Raised when a request field is missing or invalid."""
    def __init__(self, message: str, details: Optional[Dict] = None, code: str = ErrorCode.INVALID_INPUT):
        super().__init__(message, code, details)


class CredentialsError(TTSError):
    """Raised when the provider's credentials are not configured."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CREDENTIALS_MISSING, details)


class VendorError(TTSError):
    """Raised when the vendor call fails (status/body embedded in message)."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.VENDOR_ERROR, details)


class VendorTimeoutError(TTSError):
    """Raised when the vendor does not answer in time."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TIMEOUT, details)


class SynthesisError(TTSError):
    """Raised for unexpected synthesis failures."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass
class ChunkRequest:
    """
    One chunk synthesis request.

    Attributes:
        text: Chunk text.
        provider: Provider identifier.
        voice: Voice label used in the filename and echoed back.
        model: Generic model override.
        chunk_index: Correlates the response with its chunk.
        user_id: Requesting user.
        provider_fields: Provider-specific wire fields
            (elevenLabsVoiceId, fishAudioVoiceId, fishAudioModel,
            minimaxVoiceId, minimaxModel).
    """
    text: Optional[str]
    provider: Optional[str]
    voice: Optional[str] = None
    model: Optional[str] = None
    chunk_index: int = 0
    user_id: str = "unknown_user"
    provider_fields: Dict[str, Optional[str]] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ChunkRequest":
        """Build from the camelCase wire body of the synthesis endpoint."""
        chunk_index = payload.get("chunkIndex")
        return cls(
            text=payload.get("text"),
            provider=payload.get("provider"),
            voice=payload.get("voice"),
            model=payload.get("model"),
            chunk_index=int(chunk_index) if chunk_index is not None else 0,
            user_id=payload.get("userId") or "unknown_user",
            provider_fields={k: payload.get(k) for k in PROVIDER_FIELDS if payload.get(k) is not None},
        )


@dataclass
class ChunkAudio:
    """
    Result of a successful chunk synthesis.

    Attributes:
        audio: Raw MP3 bytes.
        duration: Estimated seconds (ceil of chars / speaking rate).
        provider: Provider identifier.
        voice: Voice label.
        model: Model used.
        chunk_index: Chunk index from the request.
        filename: Suggested download filename.
        timings: Stage timings in seconds.
    """
    audio: bytes
    duration: int
    provider: str
    voice: Optional[str]
    model: Optional[str]
    chunk_index: int
    filename: str
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.audio)

    @property
    def audio_b64(self) -> str:
        return base64.b64encode(self.audio).decode("ascii")

    @property
    def audio_url(self) -> str:
        return f"data:audio/mpeg;base64,{self.audio_b64}"

    def to_dict(self) -> Dict[str, Any]:
        """Success body for the synthesis endpoint."""
        b64 = self.audio_b64
        return {
            "success": True,
            "audioUrl": self.audio_url,
            "audioData": b64,
            "duration": self.duration,
            "provider": self.provider,
            "voice": self.voice,
            "model": self.model,
            "chunkIndex": self.chunk_index,
            "filename": self.filename,
            "size": self.size,
        }


def estimate_duration(text: str, chars_per_second: int = Defaults.CHARS_PER_SECOND) -> int:
    """Rough spoken duration in whole seconds."""
    return math.ceil(len(text) / chars_per_second)


def make_filename(provider: str, voice: Optional[str], chunk_index: int, now_ms: Optional[int] = None) -> str:
    """``{provider}-{voice}-chunk{index}-{epoch ms}.mp3`` with the voice made filename-safe."""
    safe_voice = _UNSAFE_FILENAME.sub("_", voice) if voice else "unknown"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{provider}-{safe_voice}-chunk{chunk_index}-{now_ms}.mp3"


# =============================================================================
# Service
# =============================================================================

class SynthesisService:
    """
    Validates one chunk request and runs it through the matching adapter.

    Usage:
        service = SynthesisService(settings)
        audio = await service.synthesize_chunk(request)
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._config = settings.get_app_config()
        self._started = time.time()

    @property
    def settings(self) -> Settings:
        return self._settings

    def provider(self, name: str) -> BaseProvider:
        return get_provider(name, self._settings)

    def provider_config(self, name: str) -> ProviderConfig:
        return self.provider(name).config(self._config.chunking.size_for(name))

    def provider_configs(self) -> List[ProviderConfig]:
        return [self.provider_config(name) for name in known_providers()]

    def validate(self, req: ChunkRequest) -> tuple[BaseProvider, str]:
        """
        Run the validation steps in order.

        Returns:
            (adapter, vendor voice id)

        Raises:
            InvalidInputError: Missing field or unknown provider.
            CredentialsError: Provider credentials absent.
        """
        details = {"chunkIndex": req.chunk_index}
        try:
            validate_required(req.text, req.provider)
            validate_provider(req.provider)
            validate_text_length(req.text)
            adapter = self.provider(req.provider)
            voice_id = validate_voice_field(req.provider_fields, adapter.voice_field, adapter.display_name)
        except ValidationError as e:
            code = ErrorCode.UNSUPPORTED_PROVIDER if e.code == "UNSUPPORTED_PROVIDER" else ErrorCode.INVALID_INPUT
            raise InvalidInputError(e.message, {**details, "field": e.field}, code=code) from e

        try:
            adapter.require_credentials()
        except CredentialsMissingError as e:
            raise CredentialsError(e.message, {**details, "missing": e.missing}) from e

        return adapter, voice_id

    def _resolve_model(self, adapter: BaseProvider, req: ChunkRequest) -> Optional[str]:
        model = req.provider_fields.get(adapter.model_field) if adapter.model_field else None
        return adapter.resolve_model(model or req.model)

    async def synthesize_chunk(self, req: ChunkRequest, request_id: str = "-") -> ChunkAudio:
        """
        Synthesize one chunk.

        Raises:
            TTSError: Any failure, with ``details["chunkIndex"]`` set.
        """
        adapter, voice_id = self.validate(req)
        details = {"chunkIndex": req.chunk_index}
        model = self._resolve_model(adapter, req)
        provider = adapter.name

        info(_LOG, "chunk_request", provider=provider, chunk=req.chunk_index,
             chars=len(req.text), model=model)
        verbose(_LOG, "chunk_text", chunk=req.chunk_index,
                preview=req.text[: self._config.logging.text_preview_chars])

        with timeit("synthesize") as t:
            try:
                result = await adapter.synthesize(req.text, voice_id, model)
            except httpx.TimeoutException as e:
                self._record_failure(provider, ErrorCode.TIMEOUT, t.elapsed, req.chunk_index, e)
                raise VendorTimeoutError(
                    f"{adapter.display_name} request timed out [Chunk {req.chunk_index}]", details,
                ) from e
            except CredentialsMissingError as e:
                raise CredentialsError(e.message, {**details, "missing": e.missing}) from e
            except ProviderError as e:
                self._record_failure(provider, ErrorCode.VENDOR_ERROR, t.elapsed, req.chunk_index, e)
                raise VendorError(
                    f"Failed to generate audio: {e.message} [Chunk {req.chunk_index}]",
                    {**details, "vendorStatus": e.status_code},
                ) from e
            except httpx.HTTPError as e:
                self._record_failure(provider, ErrorCode.VENDOR_ERROR, t.elapsed, req.chunk_index, e)
                raise VendorError(
                    f"Failed to generate audio: {adapter.display_name} transport error: {e} "
                    f"[Chunk {req.chunk_index}]",
                    details,
                ) from e
            except Exception as e:
                self._record_failure(provider, ErrorCode.SYNTHESIS_FAILED, t.elapsed, req.chunk_index, e)
                raise SynthesisError(f"Failed to generate audio: {e} [Chunk {req.chunk_index}]", details) from e

        seconds = t.timing.seconds
        audio = ChunkAudio(
            audio=result.audio,
            duration=estimate_duration(req.text, Defaults.CHARS_PER_SECOND),
            provider=provider,
            voice=req.voice,
            model=result.model,
            chunk_index=req.chunk_index,
            filename=make_filename(provider, req.voice, req.chunk_index),
            timings={**result.timings_s, "total": seconds},
        )

        metrics.record_chunk(provider, "success", seconds, audio.size)
        success(_LOG, "chunk_done", provider=provider, chunk=req.chunk_index,
                bytes=audio.size, seconds=seconds)
        return audio

    def _record_failure(self, provider: str, code: str, seconds: float, chunk_index: int, exc: BaseException) -> None:
        metrics.record_chunk(provider, code.lower(), seconds)
        fail(_LOG, "chunk_failed", provider=provider, chunk=chunk_index, code=code, error=str(exc))

    def get_health_info(self) -> Dict[str, Any]:
        providers = {}
        for name in known_providers():
            adapter = self.provider(name)
            providers[name] = {"configured": adapter.is_configured()}
        return {
            "status": "healthy",
            "uptime_s": round(time.time() - self._started, 1),
            "providers": providers,
            "store_configured": self._settings.store_configured,
        }


# =============================================================================
# Singleton
# =============================================================================

_SERVICE: Optional[SynthesisService] = None
_SERVICE_LOCK = threading.Lock()


def get_service(settings: Settings) -> SynthesisService:
    """Process-wide SynthesisService, rebuilt if Settings change."""
    global _SERVICE
    if _SERVICE is None or _SERVICE.settings is not settings:
        with _SERVICE_LOCK:
            if _SERVICE is None or _SERVICE.settings is not settings:
                _SERVICE = SynthesisService(settings)
    return _SERVICE


def reset_service() -> None:
    global _SERVICE
    with _SERVICE_LOCK:
        _SERVICE = None
