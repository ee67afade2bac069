"""Domain types for minted credentials and their bookkeeping."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TokenScope(str, Enum):
    REALTIME_SESSION = "realtime-session"


class SessionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.EXPIRED, SessionStatus.REVOKED)


def token_reference(value: str) -> str:
    """Stable, non-reversible handle for a token value."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:32]


@dataclass(frozen=True, slots=True)
class UpstreamGrant:
    """What the provider handed back for one mint call."""

    value: str = field(repr=False)
    expires_at: datetime | None


@dataclass(frozen=True, slots=True)
class MintedToken:
    value: str = field(repr=False)
    issued_at: datetime
    expires_at: datetime
    scope: TokenScope
    consumer_id: str

    def __post_init__(self) -> None:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")

    @property
    def ref(self) -> str:
        return token_reference(self.value)

    @property
    def lifetime_seconds(self) -> float:
        return (self.expires_at - self.issued_at).total_seconds()


@dataclass(slots=True)
class SessionRecord:
    token_ref: str
    scope: TokenScope
    consumer_id: str
    expires_at: datetime
    created_at: datetime
    status: SessionStatus = SessionStatus.PENDING
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.updated_at is None:
            self.updated_at = self.created_at
