"""Exchange the provider credential for short-lived session tokens."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Awaitable, Callable

from coach_relay.config import Settings
from coach_relay.errors import UpstreamRejected, UpstreamUnavailable
from coach_relay.schemas.tokens import MintedToken, TokenScope, token_reference
from coach_relay.services.prompt_builder import PromptBuilder
from coach_relay.services.realtime_provider import RealtimeProvider
from coach_relay.services.session_registry import SessionRegistry
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.upstream_max_attempts,
            base_delay=settings.upstream_retry_base_delay_seconds,
            max_delay=settings.upstream_retry_max_delay_seconds,
        )

    def delay(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


@dataclass(slots=True)
class MintProgress:
    """Attempt counter the caller can read even if it stops waiting."""

    attempts: int = 0


class TokenMintingService:
    """Mints one scoped token per call; never hands out the vault secret.

    Only ``UpstreamUnavailable`` is retried. Rejections are final and
    timeouts are left to the caller.
    """

    def __init__(
        self,
        provider: RealtimeProvider,
        vault: CredentialVault,
        registry: SessionRegistry,
        prompt_builder: PromptBuilder,
        max_lifetime: timedelta,
        retry: RetryPolicy = RetryPolicy(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._provider = provider
        self._vault = vault
        self._registry = registry
        self._prompt_builder = prompt_builder
        self._max_lifetime = max_lifetime
        self._retry = retry
        self._sleep = sleep
        self._clock = clock

    async def mint(
        self,
        scope: TokenScope = TokenScope.REALTIME_SESSION,
        consumer_id: str = "anonymous",
        display_name: str | None = None,
        progress: MintProgress | None = None,
    ) -> MintedToken:
        if scope is not TokenScope.REALTIME_SESSION:
            raise UpstreamRejected(f"Unsupported token scope: {scope}")

        config = self._prompt_builder.build_session_config(display_name)
        progress = progress if progress is not None else MintProgress()

        attempt = 0
        while True:
            attempt += 1
            progress.attempts = attempt
            issued_at = self._clock()
            try:
                grant = await self._provider.mint_session(config)
                break
            except UpstreamUnavailable as exc:
                if attempt >= self._retry.max_attempts:
                    logger.error(
                        "Upstream unavailable after %d attempt(s): %s", attempt, exc.message
                    )
                    raise
                delay = self._retry.delay(attempt)
                logger.warning(
                    "Upstream mint attempt %d/%d failed (%s); retrying in %.2fs",
                    attempt,
                    self._retry.max_attempts,
                    exc.message,
                    delay,
                )
                await self._sleep(delay)

        return self._wrap(grant.value, grant.expires_at, issued_at, scope, consumer_id)

    def _wrap(
        self,
        value: str,
        upstream_expiry: datetime | None,
        issued_at: datetime,
        scope: TokenScope,
        consumer_id: str,
    ) -> MintedToken:
        if self._vault.exposes(value):
            # Fail closed: a grant carrying the long-lived secret is never usable
            logger.critical("Upstream grant contained the provider credential; refusing it")
            raise UpstreamRejected("Upstream returned an unscoped credential")

        if token_reference(value) in self._registry:
            logger.error("Upstream returned a token that was already issued")
            raise UpstreamRejected("Upstream returned a previously issued token")

        ceiling = issued_at + self._max_lifetime
        expires_at = ceiling if upstream_expiry is None else min(upstream_expiry, ceiling)
        if expires_at <= issued_at:
            logger.error("Upstream grant already expired at issuance")
            raise UpstreamRejected("Upstream returned an expired token")

        return MintedToken(
            value=value,
            issued_at=issued_at,
            expires_at=expires_at,
            scope=scope,
            consumer_id=consumer_id,
        )
