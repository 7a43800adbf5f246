"""
Tests for the admin HTTP API.

Access control is exercised against a real SupabaseAdminStore on a
MockTransport backend. Route behavior uses an in-memory store with
require_admin overridden.
"""
from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from tts_batch.api.dependencies import (
    get_admin_store,
    get_settings,
    get_synthesis_service,
    require_admin,
    require_store,
)
from tts_batch.main import create_app
from tts_batch.services.admin_store import AdminStoreError, SupabaseAdminStore
from tts_batch.services.synthesis_service import SynthesisService

ADMIN = {"id": "admin-1", "email": "admin@example.com"}


class MemoryStore:
    """In-memory stand-in for SupabaseAdminStore."""

    def __init__(self):
        self.voices = [{"id": 1, "voice_id": "clone-1", "name": "Narrator", "provider": "minimax"}]
        self.users = [{"id": "admin-1"}, {"id": "u2"}]
        self.profiles = {"admin-1": {"user_id": "admin-1", "is_admin": True},
                         "u2": {"user_id": "u2", "is_admin": False}}
        self.jobs = []

    async def list_voices(self, provider=None):
        return [v for v in self.voices if provider in (None, v["provider"])]

    async def create_voice(self, record):
        row = {"id": len(self.voices) + 1, **record}
        self.voices.append(row)
        return row

    async def update_voice(self, voice_id, fields):
        for v in self.voices:
            if str(v["id"]) == voice_id:
                v.update(fields)
                return v
        raise AdminStoreError(f"Voice not found: {voice_id}", status_code=404)

    async def delete_voice(self, voice_id):
        self.voices = [v for v in self.voices if str(v["id"]) != voice_id]

    async def list_users(self):
        return list(self.users)

    async def list_profiles(self):
        return list(self.profiles.values())

    async def create_user(self, email, password, is_admin=False):
        user = {"id": f"u{len(self.users) + 1}", "email": email}
        self.users.append(user)
        self.profiles[user["id"]] = {"user_id": user["id"], "is_admin": is_admin}
        return user

    async def delete_user(self, user_id):
        self.users = [u for u in self.users if u["id"] != user_id]

    async def set_admin(self, user_id, is_admin):
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        profile["is_admin"] = is_admin
        return profile

    async def list_jobs(self):
        return list(self.jobs)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client(settings, store):
    app = create_app()
    service = SynthesisService(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_synthesis_service] = lambda: service
    app.dependency_overrides[require_store] = lambda: store
    app.dependency_overrides[require_admin] = lambda: ADMIN
    return TestClient(app)


def _guarded_client(settings, backend) -> TestClient:
    app = create_app()
    real_store = SupabaseAdminStore("https://store.test", "service-key", anon_key="anon-key",
                                    transport=httpx.MockTransport(backend))
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_admin_store] = lambda: real_store
    return TestClient(app)


def _backend(is_admin: bool):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/v1/user":
            if request.headers["authorization"] != "Bearer good-token":
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json={"id": "u2"})
        if request.url.path == "/rest/v1/profiles":
            return httpx.Response(200, json=[{"is_admin": is_admin}])
        if request.url.path == "/rest/v1/ai_voices":
            return httpx.Response(200, json=[])
        return httpx.Response(404)
    return handler


class TestAccessControl:

    def test_store_not_configured(self, settings):
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_admin_store] = lambda: None
        r = TestClient(app).get("/v1/admin/voices", headers={"Authorization": "Bearer good-token"})
        assert r.status_code == 503
        assert r.json() == {"success": False, "error": "Admin store not configured"}

    def test_missing_token(self, settings):
        r = _guarded_client(settings, _backend(True)).get("/v1/admin/voices")
        assert r.status_code == 401
        assert r.json()["error"] == "Unauthorized"

    def test_invalid_token(self, settings):
        r = _guarded_client(settings, _backend(True)).get(
            "/v1/admin/voices", headers={"Authorization": "Bearer wrong"})
        assert r.status_code == 401

    def test_not_admin(self, settings):
        r = _guarded_client(settings, _backend(False)).get(
            "/v1/admin/voices", headers={"Authorization": "Bearer good-token"})
        assert r.status_code == 403
        assert r.json()["error"] == "Admin access required"

    def test_admin_allowed(self, settings):
        r = _guarded_client(settings, _backend(True)).get(
            "/v1/admin/voices", headers={"Authorization": "Bearer good-token"})
        assert r.status_code == 200
        assert r.json() == {"success": True, "voices": []}

    def test_providers_route_guarded(self, settings):
        r = _guarded_client(settings, _backend(True)).get("/v1/admin/providers")
        assert r.status_code == 401


class TestVoices:

    def test_list(self, client):
        r = client.get("/v1/admin/voices")
        assert r.json()["voices"][0]["voice_id"] == "clone-1"

    def test_create(self, client, store):
        r = client.post("/v1/admin/voices", json={"voice_id": "v2", "name": "Deep", "provider": "fishaudio"})
        assert r.status_code == 200
        assert r.json()["voice"]["id"] == 2
        assert store.voices[-1]["name"] == "Deep"

    def test_create_missing_field(self, client):
        r = client.post("/v1/admin/voices", json={"voice_id": "v2", "provider": "minimax"})
        assert r.status_code == 400
        assert r.json() == {"success": False, "error": "Missing required field 'name'"}

    def test_create_unknown_provider(self, client):
        r = client.post("/v1/admin/voices", json={"voice_id": "v", "name": "n", "provider": "acme"})
        assert r.status_code == 400
        assert r.json()["error"] == "Unsupported provider: acme"

    def test_update(self, client):
        r = client.patch("/v1/admin/voices/1", json={"name": "Renamed"})
        assert r.status_code == 200
        assert r.json()["voice"]["name"] == "Renamed"

    def test_update_nothing(self, client):
        r = client.patch("/v1/admin/voices/1", json={})
        assert r.status_code == 400
        assert r.json()["error"] == "No fields to update"

    def test_update_missing_voice(self, client):
        r = client.patch("/v1/admin/voices/99", json={"name": "x"})
        assert r.status_code == 404
        assert r.json()["success"] is False

    def test_delete(self, client, store):
        r = client.delete("/v1/admin/voices/1")
        assert r.json() == {"success": True, "message": "Voice deleted successfully"}
        assert store.voices == []


class TestProviders:

    def test_table(self, client):
        rows = client.get("/v1/admin/providers").json()["providers"]
        minimax = next(p for p in rows if p["id"] == "minimax")
        assert minimax["display_name"] == "MiniMax"
        assert minimax["chunk_size"] == 2500
        assert minimax["is_active"] is True
        assert minimax["config"] == {"fetchVoicesUrl": "/v1/voices/minimax"}


class TestUsers:

    def test_list(self, client):
        body = client.get("/v1/admin/users").json()
        assert [u["id"] for u in body["users"]] == ["admin-1", "u2"]
        assert len(body["profiles"]) == 2

    def test_create(self, client, store):
        r = client.post("/v1/admin/users", json={"email": "new@example.com", "password": "pw", "isAdmin": True})
        assert r.status_code == 200
        assert r.json()["message"] == "User created successfully"
        assert store.profiles[r.json()["user"]["id"]]["is_admin"] is True

    def test_create_requires_email_and_password(self, client):
        r = client.post("/v1/admin/users", json={"email": "new@example.com"})
        assert r.status_code == 400
        assert r.json()["error"] == "Email and password are required"

    def test_delete(self, client, store):
        r = client.delete("/v1/admin/users/u2")
        assert r.json() == {"message": "User deleted successfully"}
        assert [u["id"] for u in store.users] == ["admin-1"]

    def test_cannot_delete_self(self, client):
        r = client.delete("/v1/admin/users/admin-1")
        assert r.status_code == 400
        assert r.json()["error"] == "Cannot delete your own account"

    def test_grant_role(self, client, store):
        r = client.patch("/v1/admin/users/u2", json={"isAdmin": True})
        assert r.status_code == 200
        assert r.json()["message"] == "User role updated successfully"
        assert store.profiles["u2"]["is_admin"] is True

    def test_cannot_revoke_own_role(self, client):
        r = client.patch("/v1/admin/users/admin-1", json={"isAdmin": False})
        assert r.status_code == 400
        assert r.json()["error"] == "Cannot remove your own admin role"

    def test_role_without_profile(self, client):
        r = client.patch("/v1/admin/users/ghost", json={"isAdmin": True})
        assert r.status_code == 404
        assert r.json()["error"] == "Profile not found"

    def test_role_flag_required(self, client):
        assert client.patch("/v1/admin/users/u2", json={}).status_code == 422


class TestJobs:

    def test_stats(self, client, store):
        store.jobs = [{"user_id": "u2", "provider_used": "minimax", "characters_used": 40,
                       "created_at": "2025-01-01T00:00:00Z"}]
        body = client.get("/v1/admin/jobs", params={"period": "day"}).json()

        assert body["period"] == "day"
        assert body["total_users_with_jobs"] == 1
        assert body["job_stats"]["u2"]["total_characters"] == 40
        assert len(body["time_series"]) == 24

    def test_default_period(self, client):
        body = client.get("/v1/admin/jobs").json()
        assert body["period"] == "week"
        assert len(body["time_series"]) == 7
