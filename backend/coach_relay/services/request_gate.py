"""Admission control in front of the minting service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from coach_relay.audit import audit_token_request
from coach_relay.errors import MethodNotAllowed, RateLimited, RelayError, UpstreamTimeout
from coach_relay.schemas.tokens import MintedToken, TokenScope
from coach_relay.services.rate_limiter import RateLimiter
from coach_relay.services.session_registry import SessionRegistry
from coach_relay.services.token_minting import MintProgress, TokenMintingService
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClientContext:
    method: str
    consumer_id: str
    display_name: Optional[str] = None


class RequestGate:
    """Validates, rate limits and time-boxes each token request.

    A mint that outlives its request (deadline or disconnect) keeps running;
    its token is recorded but never delivered.
    """

    def __init__(
        self,
        minting: TokenMintingService,
        limiter: RateLimiter,
        registry: SessionRegistry,
        vault: CredentialVault,
        timeout_seconds: float,
    ) -> None:
        self._minting = minting
        self._limiter = limiter
        self._registry = registry
        self._vault = vault
        self._timeout = timeout_seconds
        self._inflight: Set[asyncio.Task] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def handle_token_request(self, ctx: ClientContext) -> MintedToken:
        progress = MintProgress()
        try:
            token = await self._admit_and_mint(ctx, progress)
        except RelayError as exc:
            audit_token_request(
                ctx.consumer_id, exc.kind, attempts=progress.attempts, retryable=exc.retryable
            )
            raise
        except asyncio.CancelledError:
            audit_token_request(
                ctx.consumer_id, "client_disconnected", attempts=progress.attempts
            )
            raise
        except Exception as exc:
            audit_token_request(
                ctx.consumer_id,
                "internal_error",
                attempts=progress.attempts,
                error_type=type(exc).__name__,
                error=self._vault.redact(str(exc)),
            )
            raise

        self._registry.activate(token.ref)
        audit_token_request(
            ctx.consumer_id,
            "issued",
            attempts=progress.attempts,
            token_ref=token.ref,
            scope=token.scope.value,
            expires_at=token.expires_at.isoformat(),
        )
        return token

    async def _admit_and_mint(self, ctx: ClientContext, progress: MintProgress) -> MintedToken:
        if ctx.method.upper() != "POST":
            raise MethodNotAllowed(f"{ctx.method.upper()} is not supported; use POST")

        verdict = self._limiter.check(ctx.consumer_id)
        if not verdict.allowed:
            logger.warning("Rate limit exceeded for consumer %s", ctx.consumer_id)
            raise RateLimited(
                "Too many token requests; back off and retry later",
                retry_after=verdict.retry_after,
            )

        task = asyncio.create_task(self._mint_and_record(ctx, progress))
        self._inflight.add(task)
        task.add_done_callback(self._finish)

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout)
        except TimeoutError as exc:
            logger.warning(
                "Mint for consumer %s exceeded %.1fs after %d attempt(s); "
                "leaving it to finish in background",
                ctx.consumer_id,
                self._timeout,
                progress.attempts,
            )
            raise UpstreamTimeout("Timed out waiting for the realtime provider") from exc

    async def _mint_and_record(self, ctx: ClientContext, progress: MintProgress) -> MintedToken:
        token = await self._minting.mint(
            TokenScope.REALTIME_SESSION,
            consumer_id=ctx.consumer_id,
            display_name=ctx.display_name,
            progress=progress,
        )
        self._registry.record(token)
        return token

    def _finish(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        # Retrieve the outcome so abandoned mints do not warn at shutdown
        exc = task.exception()
        if exc is not None and not isinstance(exc, RelayError):
            logger.error(
                "Background mint failed: %s: %s",
                type(exc).__name__,
                self._vault.redact(str(exc)),
            )

    async def aclose(self) -> None:
        """Wait for mints still running after their requests ended."""
        if self._inflight:
            logger.info("Waiting for %d in-flight mint(s)", len(self._inflight))
            await asyncio.gather(*self._inflight, return_exceptions=True)
