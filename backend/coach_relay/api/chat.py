"""Text coaching chat endpoint, streamed as server-sent events."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from coach_relay.api.dependencies import read_json_object, resolve_consumer_id
from coach_relay.audit import audit_chat_request
from coach_relay.errors import ConfigurationError, MalformedRequest, RateLimited, RelayError
from coach_relay.schemas.chat import ChatRequest
from coach_relay.services.chat_relay import ChatRelay
from coach_relay.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter()


async def parse_chat_request(request: Request) -> ChatRequest:
    data = await read_json_object(request)
    try:
        return ChatRequest.model_validate(data or {})
    except ValidationError as exc:
        raise MalformedRequest(
            "messages must be a list of {role: user|assistant, content} objects"
        ) from exc


@router.post("")
async def chat(request: Request) -> StreamingResponse:
    relay: ChatRelay | None = request.app.state.chat
    limiter: RateLimiter = request.app.state.chat_limiter
    consumer_id = resolve_consumer_id(request)

    try:
        if relay is None:
            raise ConfigurationError("Chat is not configured for this provider")
        payload = await parse_chat_request(request)

        verdict = limiter.check(consumer_id)
        if not verdict.allowed:
            logger.warning("Chat rate limit exceeded for consumer %s", consumer_id)
            raise RateLimited(
                "Too many chat requests; back off and retry later",
                retry_after=verdict.retry_after,
            )

        frames = await relay.open_stream(payload.messages, payload.display_name)
    except RelayError as exc:
        audit_chat_request(consumer_id, exc.kind, retryable=exc.retryable)
        raise

    audit_chat_request(consumer_id, "streaming", messages=len(payload.messages))
    return StreamingResponse(
        frames,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
