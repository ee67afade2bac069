"""Realtime token endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response
from pydantic import ValidationError

from coach_relay.api.dependencies import read_json_object, resolve_consumer_id
from coach_relay.audit import audit_token_request
from coach_relay.errors import MalformedRequest
from coach_relay.schemas.sessions import TokenRequest, TokenResponse
from coach_relay.services.request_gate import ClientContext, RequestGate

logger = logging.getLogger(__name__)

router = APIRouter()

# Methods routed to the gate so it can answer them with a proper 405 body.
ACCEPTED_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]


async def parse_token_request(request: Request) -> TokenRequest | None:
    data = await read_json_object(request)
    if data is None:
        return None
    try:
        return TokenRequest.model_validate(data)
    except ValidationError as exc:
        raise MalformedRequest("displayName must be a string of at most 64 characters") from exc


@router.api_route("/token", methods=ACCEPTED_METHODS, response_model=TokenResponse)
async def issue_token(request: Request, response: Response) -> TokenResponse:
    gate: RequestGate = request.app.state.gate
    consumer_id = resolve_consumer_id(request)

    payload = None
    if request.method == "POST":
        try:
            payload = await parse_token_request(request)
        except MalformedRequest as exc:
            audit_token_request(consumer_id, exc.kind, attempts=0)
            raise

    token = await gate.handle_token_request(
        ClientContext(
            method=request.method,
            consumer_id=consumer_id,
            display_name=payload.display_name if payload else None,
        )
    )

    response.headers["Cache-Control"] = "no-store"
    return TokenResponse(token=token.value, expires_at=token.expires_at)
