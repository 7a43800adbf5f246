"""
Admin API Routes.

Every route requires a bearer token whose user has ``profiles.is_admin``:
    - no store configured      -> 503
    - missing / invalid token  -> 401
    - not an admin             -> 403

Endpoints:
    GET    /v1/admin/voices              - Custom voices
    POST   /v1/admin/voices              - Register a custom voice
    PATCH  /v1/admin/voices/{id}         - Update voice_id / name / provider
    DELETE /v1/admin/voices/{id}         - Remove a custom voice
    GET    /v1/admin/providers           - Provider metadata table
    GET    /v1/admin/users               - Users and profiles
    POST   /v1/admin/users               - Create a user (and its profile)
    DELETE /v1/admin/users/{user_id}     - Delete a user (not yourself)
    PATCH  /v1/admin/users/{user_id}     - Grant or revoke the admin role
    GET    /v1/admin/jobs?period=week    - Usage statistics

Backend failures (AdminStoreError) are turned into JSON errors by the
handler registered in main.py.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from tts_batch.api.dependencies import get_synthesis_service, require_admin, require_store
from tts_batch.api.schemas import UserCreate, UserRoleUpdate, VoiceCreate, VoiceUpdate
from tts_batch.core.logging import get_logger, info
from tts_batch.services.admin_store import SupabaseAdminStore
from tts_batch.services.synthesis_service import SynthesisService
from tts_batch.services.usage_stats import DEFAULT_PERIOD, compute_usage
from tts_batch.services.validators import ValidationError, validate_admin_voice

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])

_LOG = get_logger("tts-batch.admin")


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": message})


# =============================================================================
# Custom voices
# =============================================================================

@router.get("/voices")
async def list_custom_voices(store: SupabaseAdminStore = Depends(require_store)):
    return {"success": True, "voices": await store.list_voices()}


@router.post("/voices")
async def create_custom_voice(body: VoiceCreate, store: SupabaseAdminStore = Depends(require_store)):
    """Register a voice; voice_id, name and provider are all required."""
    try:
        record = validate_admin_voice(body.model_dump())
    except ValidationError as e:
        return _bad_request(e.message)
    return {"success": True, "voice": await store.create_voice(record)}


@router.patch("/voices/{voice_id}")
async def update_custom_voice(
    voice_id: str,
    body: VoiceUpdate,
    store: SupabaseAdminStore = Depends(require_store),
):
    """Update any subset of voice_id, name and provider."""
    try:
        fields = validate_admin_voice(body.model_dump(), partial=True)
    except ValidationError as e:
        return _bad_request(e.message)
    return {"success": True, "voice": await store.update_voice(voice_id, fields)}


@router.delete("/voices/{voice_id}")
async def delete_custom_voice(voice_id: str, store: SupabaseAdminStore = Depends(require_store)):
    await store.delete_voice(voice_id)
    return {"success": True, "message": "Voice deleted successfully"}


# =============================================================================
# Providers
# =============================================================================

@router.get("/providers")
def list_providers(service: SynthesisService = Depends(get_synthesis_service)):
    """Provider metadata derived from the registry."""
    rows = []
    for config in service.provider_configs():
        rows.append({
            "id": config.identifier,
            "name": config.identifier,
            "display_name": config.display_name,
            "api_endpoint": config.api_endpoint,
            "chunk_size": config.chunk_size,
            "is_active": True,
            "config": {"fetchVoicesUrl": f"/v1/voices/{config.identifier}"},
        })
    return {"success": True, "providers": rows}


# =============================================================================
# Users
# =============================================================================

@router.get("/users")
async def list_users(store: SupabaseAdminStore = Depends(require_store)):
    users, profiles = await asyncio.gather(store.list_users(), store.list_profiles())
    return {"users": users, "profiles": profiles}


@router.post("/users")
async def create_user(body: UserCreate, store: SupabaseAdminStore = Depends(require_store)):
    if not body.email or not body.password:
        return _bad_request("Email and password are required")
    user = await store.create_user(body.email, body.password, body.isAdmin)
    return {"message": "User created successfully", "user": user}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    store: SupabaseAdminStore = Depends(require_store),
):
    if admin.get("id") == user_id:
        return _bad_request("Cannot delete your own account")
    await store.delete_user(user_id)
    return {"message": "User deleted successfully"}


@router.patch("/users/{user_id}")
async def update_user_role(
    user_id: str,
    body: UserRoleUpdate,
    admin: Dict[str, Any] = Depends(require_admin),
    store: SupabaseAdminStore = Depends(require_store),
):
    """Grant or revoke the admin role. Admins cannot revoke their own."""
    if admin.get("id") == user_id and not body.isAdmin:
        return _bad_request("Cannot remove your own admin role")
    profile = await store.set_admin(user_id, body.isAdmin)
    if profile is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Profile not found"})
    info(_LOG, "role_changed", user_id=user_id, is_admin=body.isAdmin, by=admin.get("id"))
    return {"message": "User role updated successfully", "profile": profile}


# =============================================================================
# Jobs
# =============================================================================

@router.get("/jobs")
async def job_stats(
    period: str = Query(DEFAULT_PERIOD, description="day, week or month"),
    store: SupabaseAdminStore = Depends(require_store),
):
    """Per-user totals and a time series over the requested period."""
    return compute_usage(await store.list_jobs(), period).to_dict()
