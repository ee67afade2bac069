"""FastAPI application entrypoint for the realtime token relay.

Run with ``uvicorn --factory coach_relay.main:create_app`` or the
``coach-relay`` console script.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import traceback
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coach_relay.api.routes import api_router
from coach_relay.audit import audit_logger
from coach_relay.config import Settings, get_settings
from coach_relay.errors import ErrorResponse, RelayError
from coach_relay.services.chat_relay import ChatClient, ChatRelay
from coach_relay.services.prompt_builder import PromptBuilder
from coach_relay.services.provider_factory import build_provider
from coach_relay.services.rate_limiter import RateLimiter
from coach_relay.services.realtime_provider import RealtimeProvider
from coach_relay.services.request_gate import RequestGate
from coach_relay.services.session_registry import SessionRegistry, run_periodic_sweep
from coach_relay.services.token_minting import RetryPolicy, TokenMintingService
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)

HTTP_ERROR_KINDS = {
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


def prune_limiters(*limiters: RateLimiter):
    def prune() -> None:
        for limiter in limiters:
            limiter.prune()

    return prune


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    sweeper = asyncio.create_task(
        run_periodic_sweep(
            state.registry,
            state.settings.session_sweep_interval_seconds,
            on_tick=prune_limiters(state.limiter, state.chat_limiter),
        )
    )
    logger.info("Token relay started (provider=%s)", state.settings.provider)
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await state.gate.aclose()
        if state.chat is not None:
            await state.chat.aclose()
        logger.info("Token relay stopped")


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
        headers=exc.headers(),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework errors (unknown route, operator auth) in the relay's error shape."""
    body = ErrorResponse(
        kind=HTTP_ERROR_KINDS.get(exc.status_code, "http_error"),
        message=exc.detail if isinstance(exc.detail, str) else "Request failed",
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=exc.headers,
    )


async def catch_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        vault: CredentialVault = request.app.state.vault
        audit_logger.error(
            "Unhandled exception on %s %s\n%s",
            request.method,
            request.url.path,
            vault.redact("".join(traceback.format_exception(exc))),
        )
        body = ErrorResponse(kind="internal_error", message="Internal server error")
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def create_app(
    settings: Settings | None = None,
    provider: RealtimeProvider | None = None,
    chat_client: ChatClient | None = None,
) -> FastAPI:
    """Wire every component from ``settings``.

    Raises ConfigurationError before any route exists when the provider
    credential is missing.
    """
    settings = settings or get_settings()
    vault = CredentialVault.from_settings(settings)
    provider = provider or build_provider(settings, vault)
    prompt_builder = PromptBuilder(settings)

    registry = SessionRegistry(retention=timedelta(seconds=settings.session_retention_seconds))
    limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)
    minting = TokenMintingService(
        provider=provider,
        vault=vault,
        registry=registry,
        prompt_builder=prompt_builder,
        max_lifetime=timedelta(seconds=settings.max_token_lifetime_seconds),
        retry=RetryPolicy.from_settings(settings),
    )
    gate = RequestGate(minting, limiter, registry, vault, settings.upstream_timeout_seconds)

    chat = ChatRelay.from_settings(settings, vault, prompt_builder, client=chat_client)
    chat_limiter = RateLimiter(
        settings.chat_rate_limit_requests, settings.rate_limit_window_seconds
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.vault = vault
    app.state.registry = registry
    app.state.limiter = limiter
    app.state.gate = gate
    app.state.chat = chat
    app.state.chat_limiter = chat_limiter

    app.middleware("http")(catch_unhandled_errors)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["POST"],
        allow_headers=["Content-Type", "X-Client-Id"],
    )
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(api_router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Simple health probe."""
        return {"status": "ok"}

    return app


def run() -> None:
    """Console entry point."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level.upper(),
    )
    uvicorn.run(
        "coach_relay.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
