"""Request helpers shared by the client-facing routes."""

from __future__ import annotations

import json
from typing import Any

from fastapi import Request

from coach_relay.config import Settings
from coach_relay.errors import MalformedRequest

MAX_CLIENT_ID_LENGTH = 128


def resolve_consumer_id(request: Request) -> str:
    """Key for rate limiting and audit.

    ``X-Client-Id`` and ``X-Forwarded-For`` are client-controlled, so they
    are only read when TRUST_FORWARDED_HEADERS says a proxy sets them.
    """
    settings: Settings = request.app.state.settings
    if settings.trust_forwarded_headers:
        client_id = request.headers.get("X-Client-Id", "").strip()
        if client_id:
            return client_id[:MAX_CLIENT_ID_LENGTH]

        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else "unknown"


async def read_json_object(request: Request) -> dict[str, Any] | None:
    """Parse the body as a JSON object; an empty body yields None."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedRequest("Request body must be a JSON object") from exc
    if not isinstance(data, dict):
        raise MalformedRequest("Request body must be a JSON object")
    return data
