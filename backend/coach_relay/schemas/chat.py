"""Schemas for the text coaching chat relay."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from coach_relay.schemas.sessions import MAX_DISPLAY_NAME_LENGTH

ChatRole = Literal["user", "assistant"]

MAX_CHAT_MESSAGES = 50
MAX_CHAT_MESSAGE_LENGTH = 4000


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: ChatRole
    content: str = Field(max_length=MAX_CHAT_MESSAGE_LENGTH)


class ChatRequest(BaseModel):
    """Conversation so far, oldest first. The system prompt is added server side."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    messages: List[ChatMessage] = Field(default_factory=list, max_length=MAX_CHAT_MESSAGES)
    display_name: Optional[str] = Field(
        default=None, alias="displayName", max_length=MAX_DISPLAY_NAME_LENGTH
    )
