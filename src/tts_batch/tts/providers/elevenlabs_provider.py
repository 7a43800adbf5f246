"""
ElevenLabs provider.

Uses the official ``elevenlabs`` SDK. ``text_to_speech.convert`` yields the
MP3 as a stream of byte chunks; the stream is drained completely before the
audio is returned. The SDK is synchronous, so calls run in a worker thread.

Model is fixed to ``eleven_multilingual_v2`` at ``mp3_44100_128``.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from tts_batch.core.config import Settings
from tts_batch.core.logging import verbose
from tts_batch.tts.provider import (
    BaseProvider,
    ModelInfo,
    ProviderError,
    SynthResult,
    VoiceInfo,
    VoiceListing,
)
from tts_batch.utils.timeit import timeit

MODEL_ID = "eleven_multilingual_v2"
OUTPUT_FORMAT = "mp3_44100_128"


class ElevenLabsProvider(BaseProvider):
    name = "elevenlabs"
    display_name = "ElevenLabs"
    voice_field = "elevenLabsVoiceId"
    model_field = None
    credential_names = ("elevenlabs_api_key",)
    default_model = MODEL_ID
    api_endpoint = "https://api.elevenlabs.io/v1/text-to-speech"
    models = (ModelInfo(id=MODEL_ID, name="Eleven Multilingual v2"),)
    fallback_voices = (
        VoiceInfo(id="21m00Tcm4TlvDq8ikWAM", name="Rachel (Fallback)"),
        VoiceInfo(id="pNInz6obpgDQGcFmaJgB", name="Adam (Fallback)"),
    )

    def __init__(self, settings: Settings, client: Any = None):
        super().__init__(settings)
        self._sdk_client = client

    def _get_client(self) -> Any:
        """SDK client, created lazily so the import only happens when used."""
        if self._sdk_client is None:
            from elevenlabs.client import ElevenLabs
            self._sdk_client = ElevenLabs(
                api_key=self.credential("elevenlabs_api_key"),
                timeout=self._timeout_s,
            )
        return self._sdk_client

    def resolve_model(self, model: Optional[str]) -> Optional[str]:
        return MODEL_ID

    def _convert(self, text: str, voice_id: str) -> bytes:
        stream = self._get_client().text_to_speech.convert(
            voice_id=voice_id,
            text=text,
            model_id=MODEL_ID,
            output_format=OUTPUT_FORMAT,
        )
        return b"".join(stream)

    async def synthesize(self, text: str, voice_id: str, model: Optional[str] = None) -> SynthResult:
        self.require_credentials()

        with timeit("vendor") as t:
            try:
                audio = await asyncio.to_thread(self._convert, text, voice_id)
            except ProviderError:
                raise
            except Exception as e:
                # SDK raises ApiError with status_code/body
                status = getattr(e, "status_code", None)
                body = getattr(e, "body", None)
                prefix = f"ElevenLabs API error: {status}" if status is not None else "ElevenLabs API error:"
                raise ProviderError(
                    f"{prefix} {e}",
                    provider=self.name,
                    status_code=status,
                    body=str(body) if body is not None else None,
                ) from e

        if not audio:
            raise ProviderError("ElevenLabs returned no audio", provider=self.name)

        verbose(self.logger, "vendor_audio", provider=self.name, bytes=len(audio), seconds=t.timing.seconds)
        return SynthResult(audio=audio, model=MODEL_ID, timings_s={"vendor": t.timing.seconds})

    def _list(self) -> Any:
        return self._get_client().voices.get_all()

    async def _fetch_voices(self, options: Dict[str, Any]) -> VoiceListing:
        try:
            response = await asyncio.to_thread(self._list)
        except Exception as e:
            raise ProviderError(f"ElevenLabs voice listing failed: {e}", provider=self.name) from e

        voices = []
        for v in getattr(response, "voices", None) or []:
            voice_id = getattr(v, "voice_id", None)
            if not voice_id:
                continue
            extra: Dict[str, Any] = {}
            category = getattr(v, "category", None)
            if category:
                extra["category"] = str(category)
            labels = getattr(v, "labels", None)
            if labels:
                extra["labels"] = dict(labels)
            voices.append(VoiceInfo(id=voice_id, name=getattr(v, "name", None) or voice_id, extra=extra))

        return VoiceListing(voices=voices, models=list(self.models), total=len(voices))
