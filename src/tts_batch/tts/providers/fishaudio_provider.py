"""
Fish Audio provider.

Synthesis:
    POST https://api.fish.audio/v1/tts
    Authorization: Bearer <FISH_AUDIO_API_KEY>
    Model: <model id>            (default speech-1.5)
    Body: {text, format: mp3, mp3_bitrate: 128, reference_id, normalize, latency}

The response body is the MP3 itself.

Voice catalog:
    GET https://api.fish.audio/model?page_size=&page_number=&sort_by=...
    Only items of type "tts" or "svc" are voices.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

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

TTS_URL = "https://api.fish.audio/v1/tts"
MODELS_URL = "https://api.fish.audio/model"
DEFAULT_MODEL = "speech-1.5"

_PRICE = "$15.00 / million UTF-8 bytes"


class FishAudioProvider(BaseProvider):
    name = "fishaudio"
    display_name = "Fish Audio"
    voice_field = "fishAudioVoiceId"
    model_field = "fishAudioModel"
    credential_names = ("fishaudio_api_key",)
    default_model = DEFAULT_MODEL
    api_endpoint = TTS_URL
    models = (
        ModelInfo(id="speech-1.5", name="Speech-1.5", pricing=_PRICE),
        ModelInfo(id="speech-1.6", name="Speech-1.6", pricing=_PRICE),
        ModelInfo(id="s1", name="S1", pricing="Contact for pricing"),
    )
    fallback_voices = (
        VoiceInfo(id="fallback-female", name="Gentle Female Voice (Fallback)"),
        VoiceInfo(id="fallback-male", name="Professional Male Voice (Fallback)"),
    )

    def _headers(self, model: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.credential('fishaudio_api_key')}",
            "Content-Type": "application/json",
        }
        if model:
            headers["Model"] = model
        return headers

    async def synthesize(self, text: str, voice_id: str, model: Optional[str] = None) -> SynthResult:
        self.require_credentials()
        model = self.resolve_model(model)

        payload = {
            "text": text,
            "format": "mp3",
            "mp3_bitrate": 128,
            "reference_id": voice_id,
            "normalize": True,
            "latency": "normal",
        }

        with timeit("vendor") as t:
            async with self._client() as client:
                response = await client.post(TTS_URL, json=payload, headers=self._headers(model))
            self._raise_for_response(response)
            audio = response.content

        if not audio:
            raise ProviderError("Fish Audio returned an empty body", provider=self.name,
                                status_code=response.status_code)

        verbose(self.logger, "vendor_audio", provider=self.name, model=model, bytes=len(audio),
                seconds=t.timing.seconds)
        return SynthResult(audio=audio, model=model, timings_s={"vendor": t.timing.seconds})

    @staticmethod
    def _query(options: Dict[str, Any]) -> List[tuple]:
        params: List[tuple] = [
            ("page_size", str(options.get("page_size", 50))),
            ("page_number", str(options.get("page_number", 1))),
            ("sort_by", str(options.get("sort_by", "score"))),
        ]
        if options.get("title"):
            params.append(("title", str(options["title"])))
        language = options.get("language")
        if language:
            for lang in language if isinstance(language, (list, tuple)) else [language]:
                params.append(("language", str(lang)))
        if options.get("self"):
            params.append(("self", "true"))
        return params

    async def _fetch_voices(self, options: Dict[str, Any]) -> VoiceListing:
        async with self._client() as client:
            response = await client.get(MODELS_URL, params=self._query(options), headers=self._headers())
        self._raise_for_response(response)
        data = response.json()

        voices = []
        for item in data.get("items") or []:
            if item.get("type") not in ("tts", "svc"):
                continue
            voices.append(VoiceInfo(
                id=item["_id"],
                name=item.get("title") or item["_id"],
                extra={
                    "description": item.get("description"),
                    "type": item.get("type"),
                    "author": (item.get("author") or {}).get("nickname") or "Unknown",
                    "languages": item.get("languages") or [],
                    "tags": item.get("tags") or [],
                    "like_count": item.get("like_count") or 0,
                    "visibility": item.get("visibility"),
                    "created_at": item.get("created_at"),
                },
            ))

        return VoiceListing(voices=voices, models=list(self.models), total=data.get("total"))
