"""
Voice Catalog.

Combines a provider's live (or fallback) voice listing with the custom
voices registered in the admin store. Custom voices come after vendor
voices and are labelled "<name> (Custom)".

Neither the vendor nor the store can make a catalog request fail:
    - vendor trouble → fallback voices, usingFallback=true, error message
    - store trouble  → logged, vendor voices returned unchanged
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import httpx

from tts_batch.core.config import Settings
from tts_batch.core.logging import get_logger, info, warn
from tts_batch.core.metrics import metrics
from tts_batch.services.admin_store import AdminStoreError, SupabaseAdminStore
from tts_batch.tts.provider import VoiceInfo, VoiceListing, get_provider

_LOG = get_logger("tts-batch.voices")

CUSTOM_SUFFIX = " (Custom)"


def custom_voice(record: Dict[str, Any]) -> Optional[VoiceInfo]:
    """Store record ``{id, voice_id, name, provider}`` → VoiceInfo, or None if incomplete."""
    voice_id = record.get("voice_id")
    name = record.get("name")
    if not voice_id or not name:
        return None
    extra = {"recordId": record["id"]} if record.get("id") is not None else {}
    return VoiceInfo(id=str(voice_id), name=f"{name}{CUSTOM_SUFFIX}", custom=True, extra=extra)


def merge_custom_voices(
    voices: Iterable[VoiceInfo],
    records: Iterable[Dict[str, Any]],
    provider: str,
) -> List[VoiceInfo]:
    """Vendor voices followed by this provider's custom voices."""
    merged = list(voices)
    for record in records:
        if record.get("provider") not in (None, provider):
            continue
        voice = custom_voice(record)
        if voice is not None:
            merged.append(voice)
    return merged


async def load_custom_voices(store: Optional[SupabaseAdminStore], provider: str) -> List[Dict[str, Any]]:
    """Custom voice records for a provider; empty on a missing or failing store."""
    if store is None:
        return []
    try:
        return await store.list_voices(provider=provider)
    except (AdminStoreError, httpx.HTTPError) as e:
        warn(_LOG, "custom_voices_unavailable", provider=provider, error=str(e))
        return []


async def list_voices(
    provider: str,
    settings: Settings,
    options: Optional[Dict[str, Any]] = None,
    store: Optional[SupabaseAdminStore] = None,
) -> VoiceListing:
    """
    Merged voice catalog for one provider.

    Args:
        provider: Registry identifier.
        settings: Application settings (credentials).
        options: Vendor listing filters (page_size, title, ...).
        store: Admin store for custom voices; None skips them.

    Raises:
        UnsupportedProviderError: If the provider is not registered.
    """
    adapter = get_provider(provider, settings)
    listing = await adapter.list_voices(options)
    if listing.using_fallback:
        metrics.inc_voice_fallback(provider)

    records = await load_custom_voices(store, provider)
    listing.voices = merge_custom_voices(listing.voices, records, provider)
    info(_LOG, "voices_listed", provider=provider, voices=len(listing.voices),
         custom=len(records), fallback=listing.using_fallback)
    return listing
