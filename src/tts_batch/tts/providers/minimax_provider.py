"""
MiniMax provider.

Synthesis:
    POST https://api.minimaxi.chat/v1/t2a_v2?GroupId=<MINIMAX_GROUP_ID>
    Authorization: Bearer <MINIMAX_API_KEY>

The JSON response carries the MP3 as a hex string in ``data.audio``.
"""
from __future__ import annotations

import binascii
from typing import Any, Dict, Optional

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

TTS_URL = "https://api.minimaxi.chat/v1/t2a_v2"
VOICES_URL = "https://api.minimax.io/v1/get_voice"
DEFAULT_MODEL = "speech-02-hd"


def decode_hex_audio(hex_audio: Any) -> bytes:
    """
    Decode the hex audio string, two characters per byte.

    Raises:
        ValueError: If the value is not a non-empty even-length hex string.
    """
    if not isinstance(hex_audio, str) or not hex_audio:
        raise ValueError("audio field is missing or empty")
    if len(hex_audio) % 2:
        raise ValueError(f"audio hex has odd length {len(hex_audio)}")
    try:
        return binascii.unhexlify(hex_audio)
    except binascii.Error as e:
        raise ValueError(f"audio is not valid hex: {e}") from e


class MiniMaxProvider(BaseProvider):
    name = "minimax"
    display_name = "MiniMax"
    voice_field = "minimaxVoiceId"
    model_field = "minimaxModel"
    credential_names = ("minimax_api_key", "minimax_group_id")
    default_model = DEFAULT_MODEL
    api_endpoint = TTS_URL
    models = (
        ModelInfo(id="speech-02-turbo", name="Speech-02 Turbo"),
        ModelInfo(id="speech-02-hd", name="Speech-02 HD"),
        ModelInfo(id="speech-01-turbo", name="Speech-01 Turbo"),
        ModelInfo(id="speech-01-hd", name="Speech-01 HD"),
    )
    fallback_voices = (
        VoiceInfo(id="Wise_Woman", name="Wise Woman (Fallback)"),
        VoiceInfo(id="Deep_Voice_Man", name="Deep Voice Man (Fallback)"),
    )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credential('minimax_api_key')}",
            "Content-Type": "application/json",
        }

    async def synthesize(self, text: str, voice_id: str, model: Optional[str] = None) -> SynthResult:
        self.require_credentials()
        model = self.resolve_model(model)

        payload = {
            "model": model,
            "text": text,
            "stream": False,
            "subtitle_enable": False,
            "voice_setting": {"voice_id": voice_id, "speed": 1, "vol": 1, "pitch": 0},
            "audio_setting": {"sample_rate": 32000, "bitrate": 128000, "format": "mp3", "channel": 1},
        }

        with timeit("vendor") as t:
            async with self._client() as client:
                response = await client.post(
                    TTS_URL,
                    params={"GroupId": self.credential("minimax_group_id")},
                    json=payload,
                    headers=self._headers(),
                )
            self._raise_for_response(response)

            try:
                data = response.json()
            except ValueError as e:
                raise ProviderError(
                    f"MiniMax returned non-JSON body: {response.text[:200]}",
                    provider=self.name, status_code=response.status_code, body=response.text,
                ) from e

            hex_audio = (data.get("data") or {}).get("audio") if isinstance(data, dict) else None
            try:
                audio = decode_hex_audio(hex_audio)
            except ValueError as e:
                raise ProviderError(
                    f"No audio data from MiniMax ({e}). Response: {response.text[:500]}",
                    provider=self.name, status_code=response.status_code, body=response.text,
                ) from e

        verbose(self.logger, "vendor_audio", provider=self.name, model=model, bytes=len(audio),
                seconds=t.timing.seconds)
        return SynthResult(audio=audio, model=model, timings_s={"vendor": t.timing.seconds})

    async def _fetch_voices(self, options: Dict[str, Any]) -> VoiceListing:
        async with self._client() as client:
            response = await client.post(
                VOICES_URL,
                json={"voice_type": options.get("voice_type", "system")},
                headers=self._headers(),
            )
        self._raise_for_response(response)
        data = response.json()

        voices = []
        for item in data.get("system_voice") or []:
            voice_id = item.get("voice_id")
            if not voice_id:
                continue
            description = item.get("description") or ""
            if isinstance(description, list):
                description = ", ".join(description)
            voices.append(VoiceInfo(
                id=voice_id,
                name=item.get("voice_name") or voice_id,
                extra={"description": description},
            ))

        return VoiceListing(voices=voices, models=list(self.models), total=len(voices))
