"""
Provider Adapter Base Class and Registry.

This module provides:
    - BaseProvider: Uniform ``synthesize(text, voice_id, model)`` capability
      over one vendor's HTTP contract
    - ProviderConfig / VoiceInfo / ModelInfo: Provider metadata
    - SynthResult / VoiceListing: Adapter results
    - ProviderError family: Vendor, credential and lookup failures
    - get_provider(): Registry lookup keyed by identifier

Supported Providers:
    - elevenlabs: ElevenLabs (official SDK, streamed convert)
    - fishaudio: Fish Audio (raw MP3 response body)
    - minimax: MiniMax (hex-encoded audio inside JSON)

Implementing a New Provider:
    1. Create providers/<name>_provider.py
    2. Inherit from BaseProvider, set the class attributes
    3. Implement synthesize() and _fetch_voices()
    4. Add a factory entry to _REGISTRY
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from tts_batch.core.config import CREDENTIAL_ENV, Settings
from tts_batch.core.logging import get_logger, warn


# =============================================================================
# Errors
# =============================================================================

class ProviderError(Exception):
    """
    A vendor call did not produce audio.

    Attributes:
        provider: Provider identifier.
        status_code: Vendor HTTP status, when there was a response.
        body: Vendor response body text, when there was a response.
    """

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.body = body


class CredentialsMissingError(ProviderError):
    """Required credentials are not configured; no vendor call was made."""

    def __init__(self, provider: str, display_name: str, missing: Sequence[str]):
        env_names = [CREDENTIAL_ENV.get(name, name) for name in missing]
        super().__init__(
            f"{display_name} credentials not configured: {', '.join(env_names)}",
            provider=provider,
        )
        self.missing = list(env_names)


class UnsupportedProviderError(ValueError):
    """The provider identifier is not registered."""

    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


# =============================================================================
# Metadata
# =============================================================================

@dataclass(frozen=True)
class VoiceInfo:
    """
    One selectable voice.

    Attributes:
        id: Vendor voice identifier.
        name: Display name.
        custom: True for voices registered in the admin store.
        extra: Vendor-specific details (description, languages, ...).
    """
    id: str
    name: str
    custom: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name}
        data.update(self.extra)
        if self.custom:
            data["custom"] = True
        return data


@dataclass(frozen=True)
class ModelInfo:
    """A vendor synthesis model."""
    id: str
    name: str
    type: str = "TTS"
    pricing: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.pricing:
            data["pricing"] = self.pricing
        return data


@dataclass(frozen=True)
class ProviderConfig:
    """
    Immutable provider description used for one generation session.

    Attributes:
        identifier: Registry key ("minimax").
        display_name: Human name ("MiniMax"), also used in bundle names.
        chunk_size: Maximum characters per synthesis request.
        api_endpoint: Vendor synthesis endpoint.
        voice_field: Request field carrying this provider's voice id.
        model_field: Request field carrying the model, if selectable.
        voices: Voice catalog.
        models: Model catalog.
        default_model: Model used when none is requested.
    """
    identifier: str
    display_name: str
    chunk_size: int
    api_endpoint: str
    voice_field: str
    model_field: Optional[str] = None
    voices: tuple = ()
    models: tuple = ()
    default_model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.identifier,
            "name": self.display_name,
            "chunkSize": self.chunk_size,
            "apiEndpoint": self.api_endpoint,
            "voiceField": self.voice_field,
            "modelField": self.model_field,
            "defaultModel": self.default_model,
            "voices": [v.to_dict() for v in self.voices],
            "models": [m.to_dict() for m in self.models],
        }


@dataclass
class SynthResult:
    """
    Result of one vendor synthesis call.

    Attributes:
        audio: Raw MP3 bytes, never empty.
        model: Model actually used.
        timings_s: Stage timings in seconds.
    """
    audio: bytes
    model: Optional[str] = None
    timings_s: Dict[str, float] = field(default_factory=dict)


@dataclass
class VoiceListing:
    """Voice catalog response for one provider."""
    voices: List[VoiceInfo]
    models: List[ModelInfo]
    using_fallback: bool = False
    error: Optional[str] = None
    total: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": True,
            "voices": [v.to_dict() for v in self.voices],
            "models": [m.to_dict() for m in self.models],
            "usingFallback": self.using_fallback,
        }
        if self.total is not None:
            data["total"] = self.total
        if self.error:
            data["error"] = self.error
        return data


# =============================================================================
# Base Provider
# =============================================================================

class BaseProvider:
    """
    Base class for vendor adapters.

    Subclasses set the class attributes and implement:
        - synthesize(): Return audio bytes or raise ProviderError
        - _fetch_voices(): Return the live voice catalog

    HTTP adapters build their client through ``_client()`` so tests can
    inject an ``httpx.MockTransport``.

    Attributes:
        name: Registry identifier.
        display_name: Human name.
        voice_field: Request field with the voice id.
        model_field: Request field with the model (None if fixed).
        credential_names: Logical credential names (see CREDENTIAL_ENV).
        default_model: Model used when none is given.
        api_endpoint: Synthesis endpoint.
        models: Static model catalog.
        fallback_voices: Voices offered when the live catalog is unreachable.
    """
    name: str = "base"
    display_name: str = "Base"
    voice_field: str = "voice"
    model_field: Optional[str] = None
    credential_names: tuple = ()
    default_model: Optional[str] = None
    api_endpoint: str = ""
    models: tuple = ()
    fallback_voices: tuple = ()

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.logger = get_logger(f"tts-batch.provider.{self.name}")
        self._transport = transport
        self._timeout_s = settings.get_app_config().provider_http.timeout_s

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def credential(self, name: str) -> Optional[str]:
        return self.settings.credential(name)

    def missing_credentials(self) -> List[str]:
        return [name for name in self.credential_names if not self.credential(name)]

    def is_configured(self) -> bool:
        return not self.missing_credentials()

    def require_credentials(self) -> None:
        """
        Raises:
            CredentialsMissingError: If any required credential is absent.
        """
        missing = self.missing_credentials()
        if missing:
            raise CredentialsMissingError(self.name, self.display_name, missing)

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    def resolve_model(self, model: Optional[str]) -> Optional[str]:
        return model or self.default_model

    async def synthesize(self, text: str, voice_id: str, model: Optional[str] = None) -> SynthResult:
        """
        Synthesize one chunk.

        Raises:
            CredentialsMissingError: Before any network call.
            ProviderError: Vendor returned non-2xx or an unusable payload.
            httpx.HTTPError: Transport failure.
        """
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Voice catalog
    # -------------------------------------------------------------------------

    async def _fetch_voices(self, options: Dict[str, Any]) -> VoiceListing:
        raise NotImplementedError

    def fallback_listing(self, error: Optional[str] = None) -> VoiceListing:
        return VoiceListing(
            voices=list(self.fallback_voices),
            models=list(self.models),
            using_fallback=True,
            error=error,
        )

    async def list_voices(self, options: Optional[Dict[str, Any]] = None) -> VoiceListing:
        """
        Live voice catalog, or the fallback catalog on any failure.

        Never raises for vendor trouble; the error message travels in
        ``VoiceListing.error`` with ``using_fallback`` set.
        """
        missing = self.missing_credentials()
        if missing:
            err = CredentialsMissingError(self.name, self.display_name, missing)
            warn(self.logger, "voices_fallback", provider=self.name, reason="credentials")
            return self.fallback_listing(err.message)
        try:
            return await self._fetch_voices(options or {})
        except (ProviderError, httpx.HTTPError, ValueError, KeyError) as e:
            warn(self.logger, "voices_fallback", provider=self.name, error=str(e))
            return self.fallback_listing(str(e))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout_s)

    def _raise_for_response(self, response: httpx.Response, what: str = "API error") -> None:
        """Raise ProviderError embedding vendor status and body on non-2xx."""
        if response.is_success:
            return
        body = response.text
        raise ProviderError(
            f"{self.display_name} {what}: {response.status_code} {response.reason_phrase}. Body: {body}",
            provider=self.name,
            status_code=response.status_code,
            body=body,
        )

    def config(self, chunk_size: Optional[int] = None) -> ProviderConfig:
        """Provider metadata with the configured chunk size."""
        if chunk_size is None:
            chunk_size = self.settings.get_app_config().chunking.size_for(self.name)
        return ProviderConfig(
            identifier=self.name,
            display_name=self.display_name,
            chunk_size=chunk_size,
            api_endpoint=self.api_endpoint,
            voice_field=self.voice_field,
            model_field=self.model_field,
            voices=tuple(self.fallback_voices),
            models=tuple(self.models),
            default_model=self.default_model,
        )


# =============================================================================
# Registry
# =============================================================================

def _elevenlabs(settings: Settings) -> BaseProvider:
    from tts_batch.tts.providers.elevenlabs_provider import ElevenLabsProvider
    return ElevenLabsProvider(settings)


def _fishaudio(settings: Settings) -> BaseProvider:
    from tts_batch.tts.providers.fishaudio_provider import FishAudioProvider
    return FishAudioProvider(settings)


def _minimax(settings: Settings) -> BaseProvider:
    from tts_batch.tts.providers.minimax_provider import MiniMaxProvider
    return MiniMaxProvider(settings)


# Identifier -> factory; adding a vendor means adding one entry here
_REGISTRY: Dict[str, Callable[[Settings], BaseProvider]] = {
    "elevenlabs": _elevenlabs,
    "fishaudio": _fishaudio,
    "minimax": _minimax,
}

_INSTANCES: Dict[str, BaseProvider] = {}
_INSTANCES_LOCK = threading.Lock()


def known_providers() -> List[str]:
    return list(_REGISTRY)


def is_known_provider(name: Optional[str]) -> bool:
    return bool(name) and name in _REGISTRY


def get_provider(name: str, settings: Settings) -> BaseProvider:
    """
    Get the adapter for a provider identifier.

    Instances are cached per identifier and rebuilt when a different
    Settings object is passed.

    Raises:
        UnsupportedProviderError: If the identifier is not registered.
    """
    factory = _REGISTRY.get(name)
    if factory is None:
        raise UnsupportedProviderError(name)

    provider = _INSTANCES.get(name)
    if provider is None or provider.settings is not settings:
        with _INSTANCES_LOCK:
            provider = _INSTANCES.get(name)
            if provider is None or provider.settings is not settings:
                provider = factory(settings)
                _INSTANCES[name] = provider
    return provider


def register_provider(name: str, provider: BaseProvider) -> None:
    """Install a pre-built adapter (used to inject fakes in tests)."""
    with _INSTANCES_LOCK:
        _INSTANCES[name] = provider


def reset_providers() -> None:
    """Drop cached adapter instances."""
    with _INSTANCES_LOCK:
        _INSTANCES.clear()
