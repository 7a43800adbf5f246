"""
FastAPI Dependency Injection Providers.

Shared resources for route handlers:
    1. get_settings()          - Loads and caches application configuration
    2. get_synthesis_service() - Singleton SynthesisService
    3. get_admin_store()       - Admin store client, or None when not configured
    4. require_store()         - Same, but 503 when not configured
    5. require_admin()         - Bearer token → admin user (401 / 403)

Usage in Route Handlers:
    from fastapi import Depends
    from tts_batch.api.dependencies import get_synthesis_service

    @router.post("/v1/synthesize")
    async def synthesize(
        req: SynthesizeRequest,
        service: SynthesisService = Depends(get_synthesis_service),
    ):
        ...

Tests replace any of these through ``app.dependency_overrides``.
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, Header

from tts_batch.core.config import Settings, load_settings, settings_from_env
from tts_batch.core.logging import get_logger, warn
from tts_batch.services.admin_store import SupabaseAdminStore
from tts_batch.services.synthesis_service import SynthesisService, get_service

_LOG = get_logger("tts-batch.api")

DEFAULT_SETTINGS_PATH = "config/settings.yaml"


class AdminAccessError(Exception):
    """Admin route refused: missing store, bad token or not an admin."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The path comes from TTS_BATCH_SETTINGS (default config/settings.yaml).
    Without a settings file, defaults plus environment credentials are used.
    """
    path = os.getenv("TTS_BATCH_SETTINGS", DEFAULT_SETTINGS_PATH)
    try:
        return load_settings(path)
    except FileNotFoundError:
        warn(_LOG, "settings_missing", path=path)
        return settings_from_env()


def get_synthesis_service() -> SynthesisService:
    return get_service(get_settings())


def get_admin_store() -> Optional[SupabaseAdminStore]:
    """Admin store built from settings; None when its credentials are absent."""
    return SupabaseAdminStore.from_settings(get_settings())


def require_store(store: Optional[SupabaseAdminStore] = Depends(get_admin_store)) -> SupabaseAdminStore:
    if store is None:
        raise AdminAccessError(503, "Admin store not configured")
    return store


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_admin(
    authorization: Optional[str] = Header(default=None),
    store: SupabaseAdminStore = Depends(require_store),
) -> Dict[str, Any]:
    """
    Resolve the caller and check the admin flag.

    Raises:
        AdminAccessError: 401 when the token is missing or invalid,
            403 when the user is not an admin.
    """
    token = _bearer_token(authorization)
    if token is None:
        raise AdminAccessError(401, "Unauthorized")
    user = await store.get_user_for_token(token)
    if user is None:
        raise AdminAccessError(401, "Unauthorized")
    if not await store.is_admin(user["id"]):
        warn(_LOG, "admin_forbidden", user_id=user["id"])
        raise AdminAccessError(403, "Admin access required")
    return user
