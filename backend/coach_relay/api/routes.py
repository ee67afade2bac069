"""Top-level router composition."""

from fastapi import APIRouter

from . import chat, health, sessions, tokens

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(tokens.router, prefix="/realtime", tags=["Realtime"])
api_router.include_router(chat.router, prefix="/chat", tags=["Chat"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
