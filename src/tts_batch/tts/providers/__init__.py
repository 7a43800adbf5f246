"""
Vendor adapters.

Adapter modules are imported on first attribute access; the ElevenLabs
SDK import is not paid by MiniMax-only runs.
"""
from __future__ import annotations

import importlib
from typing import Any

_EXPORTS = {
    "ElevenLabsProvider": "tts_batch.tts.providers.elevenlabs_provider",
    "FishAudioProvider": "tts_batch.tts.providers.fishaudio_provider",
    "MiniMaxProvider": "tts_batch.tts.providers.minimax_provider",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(module_name), name)
