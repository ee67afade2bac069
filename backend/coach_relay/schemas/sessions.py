"""Schemas for the token endpoint and operator session views."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SessionStatusName = Literal["pending", "active", "expired", "revoked"]

MAX_DISPLAY_NAME_LENGTH = 64


class TokenRequest(BaseModel):
    """Optional client metadata; anything beyond the display label is ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    display_name: Optional[str] = Field(
        default=None, alias="displayName", max_length=MAX_DISPLAY_NAME_LENGTH
    )


class TokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    expires_at: datetime = Field(alias="expiresAt")


class SessionConfig(BaseModel):
    model: str
    voice: str
    instructions: str
    turn_detection: Optional[Dict[str, Any]] = None
    input_audio_transcription: Optional[Dict[str, Any]] = None
    modalities: List[str] = Field(default_factory=lambda: ["text", "audio"])


class SessionRecordView(BaseModel):
    token_ref: str
    status: SessionStatusName
    scope: str
    consumer_id: str
    created_at: datetime
    expires_at: datetime
    updated_at: datetime


class SessionListResponse(BaseModel):
    sessions: List[SessionRecordView]


class RevokeResponse(BaseModel):
    token_ref: str
    revoked: bool
