"""
Synthesis API Routes.

Endpoints:
    POST /v1/synthesize          - Synthesize one chunk (JSON with base64 MP3)
    GET  /v1/providers           - Provider configurations
    GET  /v1/voices/{provider}   - Voice catalog (vendor + custom voices)
    POST /v1/voices/{provider}   - Voice catalog with listing filters
    GET  /health                 - Health check
    GET  /metrics                - Prometheus metrics

Error Handling:
    Synthesis errors are returned as
    {
        "success": false,
        "error": "<human readable message>",
        "code": "<ERROR_CODE>",
        "chunkIndex": <n>
    }
    with the HTTP status taken from the error code:
        - INVALID_INPUT / UNSUPPORTED_PROVIDER -> 400
        - CREDENTIALS_MISSING -> 500
        - VENDOR_ERROR -> 502
        - TIMEOUT -> 504
        - anything unexpected -> 500

    The voice catalog never fails for vendor trouble; it answers 200 with
    fallback voices and ``usingFallback: true``.

Example Usage:
    >>> import httpx
    >>> r = httpx.post("http://localhost:8000/v1/synthesize", json={
    ...     "text": "Hello there.", "provider": "fishaudio",
    ...     "voice": "narrator", "fishAudioVoiceId": "abc123", "chunkIndex": 0,
    ... })
    >>> r.json()["filename"]
    'fishaudio-narrator-chunk0-1760870400000.mp3'
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from tts_batch.api.dependencies import get_admin_store, get_settings, get_synthesis_service
from tts_batch.api.schemas import ErrorResponse, SynthesizeRequest, SynthesizeResponse, VoiceListRequest
from tts_batch.core.config import Settings
from tts_batch.core.logging import error, get_logger, set_request_id
from tts_batch.core.metrics import metrics
from tts_batch.services.admin_store import SupabaseAdminStore
from tts_batch.services.synthesis_service import ChunkRequest, ErrorCode, SynthesisService, TTSError
from tts_batch.services.voice_catalog import list_voices
from tts_batch.tts.provider import UnsupportedProviderError

router = APIRouter()

_LOG = get_logger("tts-batch.api")


def _error_response(err: TTSError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@router.post(
    "/v1/synthesize",
    response_model=SynthesizeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse},
               502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def synthesize(
    req: SynthesizeRequest,
    service: SynthesisService = Depends(get_synthesis_service),
):
    """
    Synthesize one chunk.

    The request is validated before any vendor call: text and provider,
    then the provider's voice field, then the provider's credentials.

    Returns:
        JSON with ``audioUrl`` (data URL), ``audioData`` (bare base64),
        ``duration``, ``filename``, ``size`` and the echoed ``chunkIndex``.
    """
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    chunk_request = ChunkRequest.from_payload(req.model_dump(exclude_none=True))
    try:
        audio = await service.synthesize_chunk(chunk_request, rid)
    except TTSError as e:
        return _error_response(e)
    except Exception as e:
        error(_LOG, "synthesize_unhandled", chunk=chunk_request.chunk_index, error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "code": ErrorCode.INTERNAL_ERROR,
                "chunkIndex": chunk_request.chunk_index,
            },
        )

    return JSONResponse(content=audio.to_dict(), headers={"X-Request-Id": rid})


@router.get("/v1/providers")
def providers(service: SynthesisService = Depends(get_synthesis_service)):
    """Configuration of every registered provider (chunk size, fields, catalogs)."""
    return {"success": True, "providers": [c.to_dict() for c in service.provider_configs()]}


async def _voices(
    provider: str,
    options: dict,
    settings: Settings,
    store: Optional[SupabaseAdminStore],
):
    try:
        listing = await list_voices(provider, settings, options, store=store)
    except UnsupportedProviderError as e:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(e), "code": ErrorCode.UNSUPPORTED_PROVIDER},
        )
    return listing.to_dict()


@router.get("/v1/voices/{provider}")
async def voices(
    provider: str,
    settings: Settings = Depends(get_settings),
    store: Optional[SupabaseAdminStore] = Depends(get_admin_store),
):
    """Voice catalog with default listing options."""
    return await _voices(provider, {}, settings, store)


@router.post("/v1/voices/{provider}")
async def voices_filtered(
    provider: str,
    req: VoiceListRequest,
    settings: Settings = Depends(get_settings),
    store: Optional[SupabaseAdminStore] = Depends(get_admin_store),
):
    """Voice catalog with vendor listing filters (page, title, language, ...)."""
    return await _voices(provider, req.to_options(), settings, store)


@router.get("/health")
def health(service: SynthesisService = Depends(get_synthesis_service)):
    """
    Health check for load balancers and probes.

    Reports uptime and which providers have credentials configured.
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
