"""
Configuration Management for tts-batch.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (ELEVENLABS_API_KEY, TTS_BATCH_COOLDOWN_S, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    batching:
      batch_size: 5
      cooldown_s: 65
      call_timeout_s: 180

    providers:
      minimax:
        chunk_size: 2500

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tts_batch.core.logging.levels import coerce_level


class ConfigValidationError(Exception):
    """Raised when a configuration value is outside acceptable bounds."""
    pass


def _require(name: str, value: int | float, positive: bool = False) -> None:
    if value < 0 or (positive and value == 0):
        kind = "positive" if positive else "non-negative"
        raise ConfigValidationError(f"{name} must be {kind}, got {value}")


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Batching: Batch size, inter-batch cooldown, per-call timeout
        - Chunking: Per-provider chunk size limits
        - Provider HTTP: Vendor request timeout
        - Synthesis: Speaking rate used for duration estimates
        - Logging: Log level
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Batch Orchestration
    # ─────────────────────────────────────────────────────────────────────────
    BATCH_SIZE = 5                  # Chunks dispatched together
    BATCH_COOLDOWN_S = 65.0         # Wait before every batch after the first
    BATCH_CALL_TIMEOUT_S = 180.0    # Bound on one synthesis call (0 = none)
    BATCH_TICK_S = 1.0              # Cooldown countdown granularity

    # ─────────────────────────────────────────────────────────────────────────
    # Text Chunking (characters per chunk)
    # ─────────────────────────────────────────────────────────────────────────
    CHUNK_SIZE_ELEVENLABS = 3000
    CHUNK_SIZE_FISHAUDIO = 3000
    CHUNK_SIZE_MINIMAX = 2500

    # ─────────────────────────────────────────────────────────────────────────
    # Provider HTTP
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_HTTP_TIMEOUT_S = 120.0

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────
    CHARS_PER_SECOND = 15           # Rough speaking rate for duration estimate

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 50
    LOGGING_LEVEL = 2               # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


# Credential environment variables, keyed by the name adapters ask for
CREDENTIAL_ENV = {
    "elevenlabs_api_key": "ELEVENLABS_API_KEY",
    "fishaudio_api_key": "FISH_AUDIO_API_KEY",
    "minimax_api_key": "MINIMAX_API_KEY",
    "minimax_group_id": "MINIMAX_GROUP_ID",
    "supabase_url": "SUPABASE_URL",
    "supabase_service_role_key": "SUPABASE_SERVICE_ROLE_KEY",
    "supabase_anon_key": "SUPABASE_ANON_KEY",
}


@dataclass
class BatchingConfig:
    """
    Batch orchestration configuration.

    The defaults track one vendor's undocumented rate limit: five requests,
    then a little over a minute of silence.
    """
    batch_size: int = Defaults.BATCH_SIZE
    cooldown_s: float = Defaults.BATCH_COOLDOWN_S
    call_timeout_s: float = Defaults.BATCH_CALL_TIMEOUT_S
    tick_s: float = Defaults.BATCH_TICK_S


@dataclass
class ChunkingConfig:
    """Per-provider chunk size limits in characters."""
    sizes: Dict[str, int] = field(default_factory=lambda: {
        "elevenlabs": Defaults.CHUNK_SIZE_ELEVENLABS,
        "fishaudio": Defaults.CHUNK_SIZE_FISHAUDIO,
        "minimax": Defaults.CHUNK_SIZE_MINIMAX,
    })

    def size_for(self, provider: str) -> int:
        return self.sizes.get(provider, Defaults.CHUNK_SIZE_ELEVENLABS)


@dataclass
class ProviderHttpConfig:
    """Timeouts applied to vendor HTTP calls."""
    timeout_s: float = Defaults.PROVIDER_HTTP_TIMEOUT_S


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request and batch lifecycle (default)
        3 = VERBOSE: Per-chunk detail
        4 = DEBUG: Internal state
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class AppConfig:
    """
    Validated configuration built from Settings.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = AppConfig.from_settings(settings)
        print(config.batching.cooldown_s)
    """
    batching: BatchingConfig = field(default_factory=BatchingConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    provider_http: ProviderHttpConfig = field(default_factory=ProviderHttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "AppConfig":
        """
        Create AppConfig from Settings with validation.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Batching (environment overrides win)
        # ─────────────────────────────────────────────────────────────────────
        batching_raw = dict(raw.get("batching", {}) or {})
        for key, env in (
            ("batch_size", "TTS_BATCH_BATCH_SIZE"),
            ("cooldown_s", "TTS_BATCH_COOLDOWN_S"),
            ("call_timeout_s", "TTS_BATCH_CALL_TIMEOUT_S"),
        ):
            if os.getenv(env):
                batching_raw[key] = os.environ[env]

        batching = BatchingConfig(
            batch_size=int(batching_raw.get("batch_size", Defaults.BATCH_SIZE)),
            cooldown_s=float(batching_raw.get("cooldown_s", Defaults.BATCH_COOLDOWN_S)),
            call_timeout_s=float(batching_raw.get("call_timeout_s", Defaults.BATCH_CALL_TIMEOUT_S)),
            tick_s=float(batching_raw.get("tick_s", Defaults.BATCH_TICK_S)),
        )
        _require("batching.batch_size", batching.batch_size, positive=True)
        _require("batching.cooldown_s", batching.cooldown_s)
        _require("batching.call_timeout_s", batching.call_timeout_s)
        _require("batching.tick_s", batching.tick_s, positive=True)

        # ─────────────────────────────────────────────────────────────────────
        # Chunk sizes, one per provider
        # ─────────────────────────────────────────────────────────────────────
        chunking = ChunkingConfig()
        providers_raw = raw.get("providers", {}) or {}
        for name, provider_raw in providers_raw.items():
            if isinstance(provider_raw, dict) and "chunk_size" in provider_raw:
                chunking.sizes[name] = int(provider_raw["chunk_size"])
        for name, size in chunking.sizes.items():
            _require(f"providers.{name}.chunk_size", size, positive=True)

        # ─────────────────────────────────────────────────────────────────────
        # Vendor HTTP
        # ─────────────────────────────────────────────────────────────────────
        http_raw = raw.get("provider_http", {}) or {}
        provider_http = ProviderHttpConfig(
            timeout_s=float(http_raw.get("timeout_s", Defaults.PROVIDER_HTTP_TIMEOUT_S)),
        )
        _require("provider_http.timeout_s", provider_http.timeout_s, positive=True)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(level_raw, int) and not 1 <= level_raw <= 4:
            raise ConfigValidationError(f"logging.level must be between 1 and 4, got {level_raw}")

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=int(coerce_level(level_raw)),
        )
        _require("logging.text_preview_chars", logging_cfg.text_preview_chars)

        return cls(
            batching=batching,
            chunking=chunking,
            provider_http=provider_http,
            logging=logging_cfg,
        )


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    Attributes:
        raw: Dictionary of raw configuration values. Credentials live under
            the "credentials" key after environment overrides are applied.
    """
    raw: Dict[str, Any]

    def credential(self, name: str) -> Optional[str]:
        """
        Look up a credential by its logical name.

        Returns None when the credential is absent or blank.
        """
        value = (self.raw.get("credentials", {}) or {}).get(name)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def store_configured(self) -> bool:
        """Whether the hosted admin backend is reachable with service rights."""
        return bool(self.credential("supabase_url") and self.credential("supabase_service_role_key"))

    def get_app_config(self) -> AppConfig:
        """Get validated AppConfig from these settings."""
        return AppConfig.from_settings(self)


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Copy credential environment variables into raw["credentials"]."""
    credentials = dict(raw.get("credentials", {}) or {})
    for name, env in CREDENTIAL_ENV.items():
        value = os.getenv(env)
        if value:
            credentials[name] = value
    raw["credentials"] = credentials
    return raw


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Credentials are read from the environment (see CREDENTIAL_ENV) and take
    precedence over any value in the file.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=apply_env_overrides(raw))


def settings_from_env() -> Settings:
    """Settings with defaults plus environment credentials (no YAML file)."""
    return Settings(raw=apply_env_overrides({}))
