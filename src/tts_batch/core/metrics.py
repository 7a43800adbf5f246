"""
Prometheus Metrics for tts-batch.

Metrics Exposed:
    tts_batch_chunk_requests_total      - Chunk syntheses by provider and status
    tts_batch_chunk_duration_seconds    - Vendor call latency by provider
    tts_batch_audio_bytes_total         - Audio bytes returned by vendors
    tts_batch_batches_total             - Batches run by the orchestrator
    tts_batch_sessions_total            - Sessions finished, by terminal state
    tts_batch_cooldown_seconds_total    - Time spent waiting between batches
    tts_batch_voice_fallbacks_total     - Voice listings served from fallback

Usage:
    from tts_batch.core.metrics import metrics

    metrics.record_chunk("minimax", "success", duration=3.2, audio_bytes=48211)
    content, content_type = metrics.get_metrics_response()

Scrape Config Example:
    scrape_configs:
      - job_name: 'tts-batch'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class BatchMetrics:
    """
    Prometheus collectors on a private CollectorRegistry.

    One module-level instance (``metrics``) is shared by the whole process.
    A private registry keeps repeated app construction in tests from
    tripping duplicate-collector errors on the default registry.
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._chunk_requests = Counter(
            "tts_batch_chunk_requests_total",
            "Chunk synthesis requests",
            ["provider", "status"],
            registry=self._registry,
        )
        self._chunk_duration = Histogram(
            "tts_batch_chunk_duration_seconds",
            "Vendor synthesis latency in seconds",
            ["provider"],
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 180.0),
            registry=self._registry,
        )
        self._audio_bytes = Counter(
            "tts_batch_audio_bytes_total",
            "Audio bytes returned by vendors",
            ["provider"],
            registry=self._registry,
        )
        self._batches = Counter(
            "tts_batch_batches_total",
            "Batches dispatched by the orchestrator",
            registry=self._registry,
        )
        self._sessions = Counter(
            "tts_batch_sessions_total",
            "Generation sessions finished",
            ["state"],
            registry=self._registry,
        )
        self._cooldown_seconds = Counter(
            "tts_batch_cooldown_seconds_total",
            "Seconds spent in inter-batch cooldown",
            registry=self._registry,
        )
        self._voice_fallbacks = Counter(
            "tts_batch_voice_fallbacks_total",
            "Voice listings served from the fallback set",
            ["provider"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_chunk(self, provider: str, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record one chunk synthesis.

        Args:
            provider: Provider id ("elevenlabs", "fishaudio", "minimax")
            status: "success" or an error code
            duration: Call duration in seconds
            audio_bytes: Size of returned audio
        """
        self._chunk_requests.labels(provider=provider, status=status).inc()
        self._chunk_duration.labels(provider=provider).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes.labels(provider=provider).inc(audio_bytes)

    def inc_batches(self) -> None:
        self._batches.inc()

    def record_session(self, state: str) -> None:
        self._sessions.labels(state=state).inc()

    def add_cooldown(self, seconds: float) -> None:
        if seconds > 0:
            self._cooldown_seconds.inc(seconds)

    def inc_voice_fallback(self, provider: str) -> None:
        self._voice_fallbacks.labels(provider=provider).inc()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Prometheus exposition as (body, content_type)."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


metrics = BatchMetrics()
