"""
tts-batch Services Layer.

Business logic between the HTTP surface and the provider adapters.

Components:
    - synthesis_service.py: SynthesisService (one chunk, one vendor call)
    - validators.py: Input validation functions
    - voice_catalog.py: Vendor + custom voice listing
    - admin_store.py: Hosted backend client (users, voices, jobs)
    - usage_stats.py: Job record aggregation
"""
from .synthesis_service import (
    ChunkAudio,
    ChunkRequest,
    CredentialsError,
    ErrorCode,
    InvalidInputError,
    SynthesisError,
    SynthesisService,
    TTSError,
    VendorError,
    VendorTimeoutError,
)

__all__ = [
    "SynthesisService",
    "ChunkRequest",
    "ChunkAudio",
    "TTSError",
    "InvalidInputError",
    "CredentialsError",
    "VendorError",
    "VendorTimeoutError",
    "SynthesisError",
    "ErrorCode",
]
