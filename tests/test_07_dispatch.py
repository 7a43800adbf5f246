"""Tests for chunk dispatchers (in-process service and HTTP)."""
from __future__ import annotations

import asyncio
import json

import httpx

from tts_batch.services.synthesis_service import SynthesisService
from tts_batch.tts.dispatch import HttpDispatcher, ServiceDispatcher, build_chunk_payload
from tts_batch.tts.orchestrator import ChunkOutcome, GenerationSession
from tts_batch.tts.provider import get_provider, register_provider
from tts_batch.tts.providers.minimax_provider import MiniMaxProvider


def _session(settings, model=None) -> GenerationSession:
    config = get_provider("minimax", settings).config()
    return GenerationSession.create("First. Second.", config, "Wise_Woman", model=model, user_id="u-7")


class TestPayload:

    def test_voice_in_generic_and_provider_field(self, settings):
        session = _session(settings)
        payload = build_chunk_payload(session, session.chunks[0])
        assert payload == {
            "text": "First. Second.",
            "provider": "minimax",
            "voice": "Wise_Woman",
            "chunkIndex": 0,
            "userId": "u-7",
            "minimaxVoiceId": "Wise_Woman",
        }

    def test_model_in_both_fields(self, settings):
        session = _session(settings, model="speech-01-hd")
        payload = build_chunk_payload(session, session.chunks[0])
        assert payload["model"] == "speech-01-hd"
        assert payload["minimaxModel"] == "speech-01-hd"


class TestServiceDispatcher:

    def test_success_outcome(self, settings):
        register_provider("minimax", MiniMaxProvider(
            settings, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"data": {"audio": "4944"}})),
        ))
        session = _session(settings)
        outcome = asyncio.run(ServiceDispatcher(SynthesisService(settings))(session, session.chunks[0]))

        assert outcome.success is True
        assert outcome.chunk_index == 0
        assert outcome.audio_payload == "SUQ="
        assert outcome.size == 2
        assert outcome.filename.startswith("minimax-Wise_Woman-chunk0-")

    def test_error_becomes_failed_outcome(self, bare_settings):
        session = _session(bare_settings)
        outcome = asyncio.run(ServiceDispatcher(SynthesisService(bare_settings))(session, session.chunks[0]))

        assert outcome.success is False
        assert "MINIMAX_API_KEY" in outcome.error


class TestHttpDispatcher:

    def test_posts_payload_and_parses_success(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "success": True, "audioData": "SUQz", "duration": 2,
                "filename": "minimax-Wise_Woman-chunk0-5.mp3", "size": 3, "chunkIndex": 0,
            })

        dispatcher = HttpDispatcher("http://server.test/", headers={"Authorization": "Bearer t"},
                                    transport=httpx.MockTransport(handler))
        session = _session(settings)
        outcome = asyncio.run(dispatcher(session, session.chunks[0]))

        assert seen["url"] == "http://server.test/v1/synthesize"
        assert seen["auth"] == "Bearer t"
        assert seen["body"]["minimaxVoiceId"] == "Wise_Woman"
        assert outcome == ChunkOutcome(
            chunk_index=0, success=True, audio_payload="SUQz", duration=2,
            filename="minimax-Wise_Woman-chunk0-5.mp3", size=3,
        )

    def test_error_body_message(self, settings):
        def handler(request):
            return httpx.Response(500, json={"success": False, "error": "MiniMax credentials not configured"})

        session = _session(settings)
        outcome = asyncio.run(HttpDispatcher("http://s", transport=httpx.MockTransport(handler))(
            session, session.chunks[0]))
        assert outcome.success is False
        assert outcome.error == "MiniMax credentials not configured"

    def test_non_json_error(self, settings):
        session = _session(settings)
        outcome = asyncio.run(HttpDispatcher(
            "http://s", transport=httpx.MockTransport(lambda r: httpx.Response(502, text="Bad Gateway")),
        )(session, session.chunks[0]))
        assert outcome.error == "HTTP 502: Bad Gateway"


class TestOutcomeFromResponse:

    def test_audio_url_fallback(self):
        outcome = ChunkOutcome.from_response(4, {"success": True, "audioUrl": "data:audio/mpeg;base64,QUJD"})
        assert outcome.success is True
        assert outcome.audio_payload == "QUJD"
        assert outcome.filename == "chunk4.mp3"

    def test_success_without_audio_fails(self):
        outcome = ChunkOutcome.from_response(1, {"success": True})
        assert outcome.success is False
        assert outcome.error == "Response contained no audio"

    def test_failure_body(self):
        outcome = ChunkOutcome.from_response(2, {"success": False})
        assert outcome.error == "Synthesis failed"
