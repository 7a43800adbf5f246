"""
tts-batch: Long-form text-to-speech through rate-limited vendor APIs.

Long text is split at sentence boundaries into provider-sized chunks,
synthesized in small concurrent batches separated by a cooldown, and
packaged back into per-chunk MP3 files or a single ZIP bundle.

Supported Providers:
    - ElevenLabs (official SDK)
    - Fish Audio
    - MiniMax

Components:
    - HTTP service (/v1/synthesize, voice catalog, admin API)
    - Batch orchestrator with pause / resume / abort
    - tts-batch command-line driver

Example Usage:
    >>> import asyncio
    >>> from tts_batch.core.config import settings_from_env
    >>> from tts_batch.services import SynthesisService
    >>> from tts_batch.tts.dispatch import ServiceDispatcher
    >>> from tts_batch.tts.orchestrator import BatchOrchestrator
    >>>
    >>> service = SynthesisService(settings_from_env())
    >>> orchestrator = BatchOrchestrator(ServiceDispatcher(service))
    >>> session = orchestrator.new_session(long_text, service.provider_config("minimax"), voice="Wise_Woman")
    >>> asyncio.run(orchestrator.run(session))
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
