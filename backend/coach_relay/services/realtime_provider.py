"""Realtime provider interfaces."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from coach_relay.errors import UpstreamRejected, UpstreamUnavailable
from coach_relay.schemas.sessions import SessionConfig
from coach_relay.schemas.tokens import UpstreamGrant

logger = logging.getLogger(__name__)

# Upstream error bodies are logged, clipped to this many characters.
MAX_LOGGED_BODY = 300


class RealtimeProvider(Protocol):
    async def mint_session(self, config: SessionConfig) -> UpstreamGrant:
        """Return a scoped session credential issued by the provider."""
        raise NotImplementedError


def raise_for_upstream_status(provider: str, status: int, body: str) -> None:
    """Translate a non-200 upstream status into the relay's error kinds."""
    if status == 200:
        return
    logger.error(
        "%s session mint failed: %s %s", provider, status, body[:MAX_LOGGED_BODY]
    )
    if 400 <= status < 500:
        raise UpstreamRejected(f"{provider} rejected the session request ({status})")
    raise UpstreamUnavailable(f"{provider} session endpoint unavailable ({status})")


def parse_expiry(raw: Any) -> datetime | None:
    """Read a unix-seconds expiry, tolerating absent or junk values."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(raw, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None
