"""Liveness endpoint."""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    provider: str
    sessions: Dict[str, int]
    inflight_mints: int


@router.get("", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    state = request.app.state
    return HealthResponse(
        status="ok",
        provider=state.settings.provider,
        sessions=state.registry.counts(),
        inflight_mints=state.gate.inflight,
    )
