"""
API Request/Response Schemas.

Pydantic models for the HTTP surface. Wire names are camelCase to match
what the batch client sends.

Request fields are optional at the schema level: a missing ``text`` or
voice field is reported by the service's own validation with a 400 and
the standard error body, not by a framework 422.

Example Request (POST /v1/synthesize):
    {
        "text": "Chapter one. It was a bright cold day.",
        "provider": "minimax",
        "voice": "Wise_Woman",
        "minimaxVoiceId": "Wise_Woman",
        "minimaxModel": "speech-02-hd",
        "chunkIndex": 0,
        "userId": "u-123"
    }
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class SynthesizeRequest(BaseModel):
    """
    One chunk synthesis request.

    Each provider reads its voice from its own field:
        - elevenlabs: elevenLabsVoiceId
        - fishaudio:  fishAudioVoiceId (model: fishAudioModel)
        - minimax:    minimaxVoiceId   (model: minimaxModel)
    """
    text: str | None = Field(default=None, description="Chunk text")
    provider: str | None = Field(default=None, description="Provider identifier")
    voice: str | None = Field(default=None, description="Voice label used in filenames")
    model: str | None = Field(default=None, description="Model override")
    chunkIndex: int | None = Field(default=None, ge=0, description="Chunk index echoed in the response")
    userId: str | None = Field(default=None, description="Requesting user")

    elevenLabsVoiceId: str | None = None
    fishAudioVoiceId: str | None = None
    fishAudioModel: str | None = None
    minimaxVoiceId: str | None = None
    minimaxModel: str | None = None


class SynthesizeResponse(BaseModel):
    """Successful chunk synthesis."""
    success: bool = True
    audioUrl: str = Field(..., description="data:audio/mpeg;base64,... URL")
    audioData: str = Field(..., description="Bare base64 MP3")
    duration: int = Field(..., description="Estimated seconds")
    provider: str
    voice: str | None = None
    model: str | None = None
    chunkIndex: int
    filename: str
    size: int


class ErrorResponse(BaseModel):
    """Error body shared by all endpoints."""
    success: bool = False
    error: str
    code: str | None = None
    chunkIndex: int | None = None


class VoiceListRequest(BaseModel):
    """Vendor voice listing filters (Fish Audio / MiniMax)."""
    model_config = ConfigDict(populate_by_name=True)

    page_size: int | None = Field(default=None, ge=1, le=100)
    page_number: int | None = Field(default=None, ge=1)
    title: str | None = None
    language: str | List[str] | None = None
    sort_by: str | None = None
    self_only: bool | None = Field(default=None, alias="self", description="Only the caller's own voices")
    voice_type: str | None = Field(default=None, description="MiniMax voice type (system, voice_cloning, ...)")

    def to_options(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Admin
# =============================================================================

class VoiceCreate(BaseModel):
    voice_id: str | None = None
    name: str | None = None
    provider: str | None = None


class VoiceUpdate(BaseModel):
    voice_id: str | None = None
    name: str | None = None
    provider: str | None = None


class UserCreate(BaseModel):
    email: str | None = None
    password: str | None = None
    isAdmin: bool = False


class UserRoleUpdate(BaseModel):
    isAdmin: bool = Field(..., description="Grant (true) or revoke (false) the admin role")
