"""
FastAPI Application Entry Point.

Two routers are mounted:
    - Synthesis API: /v1/synthesize, /v1/providers, /v1/voices, /health, /metrics
    - Admin API: /v1/admin/...

Usage:
    uvicorn tts_batch.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tts_batch import __version__
from tts_batch.api.admin import router as admin_router
from tts_batch.api.dependencies import AdminAccessError
from tts_batch.api.routes import router
from tts_batch.core.logging import configure_logging, error, get_logger
from tts_batch.services.admin_store import AdminStoreError

_LOG = get_logger("tts-batch.api")


async def _admin_access_error(request: Request, exc: AdminAccessError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


async def _admin_store_error(request: Request, exc: AdminStoreError) -> JSONResponse:
    error(_LOG, "admin_store_error", path=request.url.path, status=exc.status_code, error=exc.message)
    status_code = 404 if exc.status_code == 404 else 500
    return JSONResponse(status_code=status_code, content={"success": False, "error": exc.message})


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

        1. Configures structured logging (TTS_BATCH_LOG_LEVEL etc.)
        2. Registers the synthesis and admin routers
        3. Maps admin access and store failures to JSON errors
    """
    configure_logging()

    app = FastAPI(title="tts-batch", version=__version__)

    app.include_router(router)
    app.include_router(admin_router)

    app.add_exception_handler(AdminAccessError, _admin_access_error)
    app.add_exception_handler(AdminStoreError, _admin_store_error)

    return app


app = create_app()
