"""
Admin Store Client.

Thin async client over the hosted backend that keeps users, admin
profiles, custom voices and job records:

    PostgREST tables:   /rest/v1/ai_voices, /rest/v1/profiles, /rest/v1/jobs
    GoTrue admin API:   /auth/v1/admin/users
    Token lookup:       /auth/v1/user

Every request carries the service role key, except token lookup which
sends the caller's bearer token with the anon key as ``apikey``.

Error Handling:
    Any non-2xx answer raises AdminStoreError with the backend status and
    body. Token lookup is the exception: 401/403 means "no such user" and
    returns None.

Usage:
    store = SupabaseAdminStore.from_settings(settings)
    if store is not None:
        voices = await store.list_voices(provider="minimax")
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from tts_batch.core.config import Settings
from tts_batch.core.logging import debug, get_logger, info, warn

_LOG = get_logger("tts-batch.admin-store")

VOICES_TABLE = "ai_voices"
PROFILES_TABLE = "profiles"
JOBS_TABLE = "jobs"

JOB_COLUMNS = "user_id,provider_used,characters_used,created_at"


class AdminStoreError(Exception):
    """
    Backend call failed.

    Attributes:
        message: What failed.
        status_code: Backend HTTP status, if one was received.
        body: Backend response body (truncated).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SupabaseAdminStore:
    """
    Async admin operations against the hosted backend.

    Args:
        url: Project URL, e.g. "https://abc.supabase.co".
        service_key: Service role key (bypasses row-level security).
        anon_key: Public key used as ``apikey`` for token lookup.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use MockTransport).
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        anon_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url.rstrip("/")
        self._service_key = service_key
        self._anon_key = anon_key or service_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> Optional["SupabaseAdminStore"]:
        """Build a store from credentials, or None when not configured."""
        if not settings.store_configured:
            return None
        return cls(
            url=settings.credential("supabase_url"),
            service_key=settings.credential("supabase_service_role_key"),
            anon_key=settings.credential("supabase_anon_key"),
            transport=transport,
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        async with httpx.AsyncClient(
            base_url=self._url, timeout=self._timeout, transport=self._transport,
        ) as client:
            response = await client.request(
                method, path, params=params, json=json, headers={**self._headers(), **(headers or {})},
            )

        debug(_LOG, "store_request", method=method, path=path, status=response.status_code)
        if not response.is_success:
            raise AdminStoreError(
                f"{method} {path} failed: {response.status_code}",
                status_code=response.status_code,
                body=response.text[:500],
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise AdminStoreError(f"{method} {path} returned invalid JSON", response.status_code,
                                  response.text[:500]) from e

    async def _select(self, table: str, **params: str) -> List[Dict[str, Any]]:
        rows = await self._request("GET", f"/rest/v1/{table}", params={"select": "*", **params})
        return list(rows or [])

    async def _write(self, method: str, table: str, json: Any = None, **params: str) -> List[Dict[str, Any]]:
        rows = await self._request(
            method, f"/rest/v1/{table}", params=params or None, json=json,
            headers={"Prefer": "return=representation"},
        )
        return list(rows or [])

    # -------------------------------------------------------------------------
    # Custom voices
    # -------------------------------------------------------------------------

    async def list_voices(self, provider: Optional[str] = None) -> List[Dict[str, Any]]:
        """Custom voice records, newest first, optionally for one provider."""
        params = {"order": "created_at.desc"}
        if provider:
            params["provider"] = f"eq.{provider}"
        return await self._select(VOICES_TABLE, **params)

    async def create_voice(self, record: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._write("POST", VOICES_TABLE, json=[record])
        if not rows:
            raise AdminStoreError("Voice insert returned no row")
        info(_LOG, "voice_created", provider=record.get("provider"), voice_id=record.get("voice_id"))
        return rows[0]

    async def update_voice(self, voice_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Raises:
            AdminStoreError: 404 when no voice has that id.
        """
        rows = await self._write("PATCH", VOICES_TABLE, json=fields, id=f"eq.{voice_id}")
        if not rows:
            raise AdminStoreError(f"Voice not found: {voice_id}", status_code=404)
        info(_LOG, "voice_updated", id=voice_id, fields=sorted(fields))
        return rows[0]

    async def delete_voice(self, voice_id: str) -> None:
        await self._request("DELETE", f"/rest/v1/{VOICES_TABLE}", params={"id": f"eq.{voice_id}"})
        info(_LOG, "voice_deleted", id=voice_id)

    # -------------------------------------------------------------------------
    # Users and profiles
    # -------------------------------------------------------------------------

    async def list_users(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/auth/v1/admin/users")
        if isinstance(data, dict):
            return list(data.get("users") or [])
        return list(data or [])

    async def list_profiles(self) -> List[Dict[str, Any]]:
        return await self._select(PROFILES_TABLE, order="created_at.desc")

    async def create_user(self, email: str, password: str, is_admin: bool = False) -> Dict[str, Any]:
        """
        Create a confirmed user and its profile row.

        A failed profile insert is logged; the user is still returned.
        """
        user = await self._request(
            "POST", "/auth/v1/admin/users",
            json={"email": email, "password": password, "email_confirm": True},
        )
        user = user or {}
        user_id = user.get("id")
        if user_id:
            try:
                await self._write("POST", PROFILES_TABLE, json=[{"user_id": user_id, "is_admin": is_admin}])
            except AdminStoreError as e:
                warn(_LOG, "profile_insert_failed", user_id=user_id, status=e.status_code, error=e.message)
        info(_LOG, "user_created", user_id=user_id, is_admin=is_admin)
        return user

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/auth/v1/admin/users/{user_id}")
        info(_LOG, "user_deleted", user_id=user_id)

    async def set_admin(self, user_id: str, is_admin: bool) -> Optional[Dict[str, Any]]:
        """Set ``profiles.is_admin``; returns the updated profile or None."""
        rows = await self._write("PATCH", PROFILES_TABLE, json={"is_admin": is_admin}, user_id=f"eq.{user_id}")
        info(_LOG, "admin_flag_set", user_id=user_id, is_admin=is_admin)
        return rows[0] if rows else None

    async def is_admin(self, user_id: str) -> bool:
        rows = await self._request(
            "GET", f"/rest/v1/{PROFILES_TABLE}",
            params={"select": "is_admin", "user_id": f"eq.{user_id}"},
        )
        return bool(rows and rows[0].get("is_admin"))

    async def get_user_for_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Resolve a bearer token to its user, or None if the token is not valid."""
        try:
            user = await self._request(
                "GET", "/auth/v1/user",
                headers={"apikey": self._anon_key, "Authorization": f"Bearer {token}"},
            )
        except AdminStoreError as e:
            if e.status_code in (401, 403):
                return None
            raise
        if not isinstance(user, dict) or not user.get("id"):
            return None
        return user

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    async def list_jobs(self) -> List[Dict[str, Any]]:
        """Job records, newest first."""
        rows = await self._request(
            "GET", f"/rest/v1/{JOBS_TABLE}",
            params={"select": JOB_COLUMNS, "order": "created_at.desc"},
        )
        return list(rows or [])
