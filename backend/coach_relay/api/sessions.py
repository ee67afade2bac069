"""Operator views over the session registry."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from coach_relay.schemas.sessions import RevokeResponse, SessionListResponse, SessionRecordView
from coach_relay.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def require_operator(
    request: Request,
    admin_key: str | None = Security(admin_key_header),
) -> None:
    expected = request.app.state.settings.admin_api_key
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator endpoints are disabled",
        )
    if not admin_key or not hmac.compare_digest(
        admin_key.encode("utf-8"), expected.get_secret_value().encode("utf-8")
    ):
        logger.warning(
            "Rejected operator request from %s",
            request.client.host if request.client else "unknown",
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin key")


router = APIRouter(dependencies=[Depends(require_operator)])


def _registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


@router.get("", response_model=SessionListResponse)
async def list_sessions(request: Request) -> SessionListResponse:
    records = _registry(request).snapshot()
    return SessionListResponse(
        sessions=[
            SessionRecordView(
                token_ref=record.token_ref,
                status=record.status.value,
                scope=record.scope.value,
                consumer_id=record.consumer_id,
                created_at=record.created_at,
                expires_at=record.expires_at,
                updated_at=record.updated_at,
            )
            for record in records
        ]
    )


@router.post("/{token_ref}/revoke", response_model=RevokeResponse)
async def revoke_session(token_ref: str, request: Request) -> RevokeResponse:
    revoked = _registry(request).revoke(token_ref)
    return RevokeResponse(token_ref=token_ref, revoked=revoked)
