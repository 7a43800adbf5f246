"""
Chunk Dispatchers.

A dispatcher turns one (session, chunk) pair into a ChunkOutcome. Two are
provided:

    ServiceDispatcher: calls SynthesisService in-process
    HttpDispatcher:    POSTs to a running server's /v1/synthesize

Both report any non-success as a failed outcome carrying the error text;
exceptions they do not handle are caught by the orchestrator and applied
to the chunk the same way.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from tts_batch.core.logging import debug, get_logger
from tts_batch.services.synthesis_service import ChunkRequest, SynthesisService, TTSError
from tts_batch.tts.chunker import TextChunk
from tts_batch.tts.orchestrator import ChunkOutcome, GenerationSession

_LOG = get_logger("tts-batch.dispatch")

SYNTHESIZE_PATH = "/v1/synthesize"


def build_chunk_payload(session: GenerationSession, chunk: TextChunk) -> Dict[str, Any]:
    """
    Wire body for one chunk.

    The session voice goes both into ``voice`` and into the provider's own
    voice field; a model goes into ``model`` and the provider's model field.
    """
    config = session.provider_config
    payload: Dict[str, Any] = {
        "text": chunk.text,
        "provider": config.identifier,
        "voice": session.voice,
        "chunkIndex": chunk.index,
        "userId": session.user_id,
        config.voice_field: session.voice,
    }
    if session.model:
        payload["model"] = session.model
        if config.model_field:
            payload[config.model_field] = session.model
    return payload


class ServiceDispatcher:
    """Dispatch through an in-process SynthesisService."""

    def __init__(self, service: SynthesisService):
        self._service = service

    async def __call__(self, session: GenerationSession, chunk: TextChunk) -> ChunkOutcome:
        request = ChunkRequest.from_payload(build_chunk_payload(session, chunk))
        try:
            audio = await self._service.synthesize_chunk(request, request_id=session.session_id)
        except TTSError as e:
            return ChunkOutcome.failure(chunk.index, e.message)
        return ChunkOutcome(
            chunk_index=chunk.index,
            success=True,
            audio_payload=audio.audio_b64,
            duration=audio.duration,
            filename=audio.filename,
            size=audio.size,
        )


class HttpDispatcher:
    """
    Dispatch over HTTP to ``{base_url}/v1/synthesize``.

    Args:
        base_url: Server root, e.g. "http://localhost:8000".
        timeout: httpx timeout in seconds; the orchestrator's per-call
            timeout is the one that fails chunks.
        headers: Extra headers (e.g. Authorization).
        transport: Optional httpx transport (tests use MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = 300.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport

    async def __call__(self, session: GenerationSession, chunk: TextChunk) -> ChunkOutcome:
        payload = build_chunk_payload(session, chunk)
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        ) as client:
            response = await client.post(SYNTHESIZE_PATH, json=payload)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        debug(_LOG, "http_dispatch", chunk=chunk.index, status=response.status_code)

        if not response.is_success:
            error = body.get("error") or f"HTTP {response.status_code}: {response.text[:200]}"
            return ChunkOutcome.failure(chunk.index, str(error))
        return ChunkOutcome.from_response(chunk.index, body)
