"""Structured audit trail for token and chat requests."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

audit_logger = logging.getLogger("coach_relay.audit")


def _emit(event: str, consumer_id: str, outcome: str, ok: bool, fields: dict[str, Any]) -> None:
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "event": event,
        "consumer_id": consumer_id,
        "outcome": outcome,
        **fields,
    }
    audit_logger.log(
        logging.INFO if ok else logging.WARNING,
        "%s consumer=%s outcome=%s",
        event,
        consumer_id,
        outcome,
        extra={"audit": entry},
    )


def audit_token_request(consumer_id: str, outcome: str, **fields: Any) -> None:
    """Emit one audit entry.

    Callers pass metadata only (token reference, expiry, error kind, attempt
    count); token values and the provider credential must never reach this
    function.
    """
    _emit("token_request", consumer_id, outcome, outcome == "issued", fields)


def audit_chat_request(consumer_id: str, outcome: str, **fields: Any) -> None:
    """Same as :func:`audit_token_request`, for the chat relay. Never pass message text."""
    _emit("chat_request", consumer_id, outcome, outcome == "streaming", fields)
