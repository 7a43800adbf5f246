"""Shared fixtures: settings with fake credentials and clean singletons."""
from __future__ import annotations

import pytest

from tts_batch.core.config import Settings
from tts_batch.services.synthesis_service import reset_service
from tts_batch.tts.provider import reset_providers

FAKE_CREDENTIALS = {
    "elevenlabs_api_key": "el-test-key",
    "fishaudio_api_key": "fa-test-key",
    "minimax_api_key": "mm-test-key",
    "minimax_group_id": "group-1",
}

_ENV_VARS = (
    "ELEVENLABS_API_KEY",
    "FISH_AUDIO_API_KEY",
    "MINIMAX_API_KEY",
    "MINIMAX_GROUP_ID",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_ANON_KEY",
    "TTS_BATCH_BATCH_SIZE",
    "TTS_BATCH_COOLDOWN_S",
    "TTS_BATCH_CALL_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """No real credentials or batching overrides leak into tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_providers()
    reset_service()
    yield
    reset_providers()
    reset_service()


@pytest.fixture
def settings() -> Settings:
    """Settings with every vendor credential present."""
    return Settings(raw={"credentials": dict(FAKE_CREDENTIALS)})


@pytest.fixture
def bare_settings() -> Settings:
    """Settings with no credentials at all."""
    return Settings(raw={})


@pytest.fixture
def store_settings() -> Settings:
    """Vendor and admin store credentials."""
    return Settings(raw={"credentials": {
        **FAKE_CREDENTIALS,
        "supabase_url": "https://store.test",
        "supabase_service_role_key": "service-key",
        "supabase_anon_key": "anon-key",
    }})
