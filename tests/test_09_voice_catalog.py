"""Tests for the merged voice catalog (vendor voices + custom voices)."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from tts_batch.core.metrics import metrics
from tts_batch.services.admin_store import SupabaseAdminStore
from tts_batch.services.voice_catalog import custom_voice, list_voices, merge_custom_voices
from tts_batch.tts.provider import UnsupportedProviderError, VoiceInfo, register_provider
from tts_batch.tts.providers.minimax_provider import MiniMaxProvider

RECORDS = [
    {"id": 7, "voice_id": "my-clone", "name": "Narrator", "provider": "minimax"},
    {"id": 8, "voice_id": "other", "name": "Other", "provider": "fishaudio"},
    {"id": 9, "voice_id": None, "name": "Broken", "provider": "minimax"},
]


def _store(handler) -> SupabaseAdminStore:
    return SupabaseAdminStore("https://store.test", "service-key", transport=httpx.MockTransport(handler))


def _minimax_voices(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"system_voice": [
        {"voice_id": "Wise_Woman", "voice_name": "Wise Woman", "description": ["calm", "warm"]},
    ]})


class TestMerge:

    def test_custom_voice_label(self):
        voice = custom_voice(RECORDS[0])
        assert voice == VoiceInfo(id="my-clone", name="Narrator (Custom)", custom=True, extra={"recordId": 7})
        assert voice.to_dict() == {"id": "my-clone", "name": "Narrator (Custom)", "recordId": 7, "custom": True}

    def test_incomplete_record_skipped(self):
        assert custom_voice(RECORDS[2]) is None

    def test_merge_keeps_vendor_voices_first(self):
        vendor = [VoiceInfo(id="Wise_Woman", name="Wise Woman")]
        merged = merge_custom_voices(vendor, RECORDS, "minimax")
        assert [v.id for v in merged] == ["Wise_Woman", "my-clone"]


class TestListVoices:

    def test_vendor_plus_custom(self, settings):
        register_provider("minimax", MiniMaxProvider(settings, transport=httpx.MockTransport(_minimax_voices)))
        seen = {}

        def store_handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=RECORDS[:1])

        listing = asyncio.run(list_voices("minimax", settings, store=_store(store_handler)))

        assert [v.name for v in listing.voices] == ["Wise Woman", "Narrator (Custom)"]
        assert listing.voices[0].extra["description"] == "calm, warm"
        assert listing.using_fallback is False
        assert seen["params"]["provider"] == "eq.minimax"

    def test_store_failure_keeps_vendor_voices(self, settings):
        register_provider("minimax", MiniMaxProvider(settings, transport=httpx.MockTransport(_minimax_voices)))
        store = _store(lambda r: httpx.Response(503, text="down"))

        listing = asyncio.run(list_voices("minimax", settings, store=store))
        assert [v.id for v in listing.voices] == ["Wise_Woman"]

    def test_fallback_counts_metric(self, bare_settings):
        before = metrics.registry.get_sample_value(
            "tts_batch_voice_fallbacks_total", {"provider": "minimax"}) or 0.0

        listing = asyncio.run(list_voices("minimax", bare_settings))

        assert listing.using_fallback is True
        assert "MINIMAX_API_KEY" in listing.error
        assert [v.id for v in listing.voices] == ["Wise_Woman", "Deep_Voice_Man"]
        after = metrics.registry.get_sample_value("tts_batch_voice_fallbacks_total", {"provider": "minimax"})
        assert after == before + 1

    def test_unknown_provider(self, settings):
        with pytest.raises(UnsupportedProviderError):
            asyncio.run(list_voices("acme", settings))
