"""Bookkeeping for minted tokens.

Records are advisory: expiring or revoking one here does not terminate the
session at the provider.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Callable, Dict, List

from coach_relay.schemas.tokens import MintedToken, SessionRecord, SessionStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    def __init__(
        self,
        retention: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._records: Dict[str, SessionRecord] = {}
        self._lock = Lock()
        self._retention = retention
        self._clock = clock

    def __contains__(self, token_ref: object) -> bool:
        with self._lock:
            return token_ref in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def record(self, token: MintedToken) -> None:
        """Start tracking ``token``; a second call for the same token is a no-op."""
        ref = token.ref
        with self._lock:
            if ref in self._records:
                return
            self._records[ref] = SessionRecord(
                token_ref=ref,
                scope=token.scope,
                consumer_id=token.consumer_id,
                expires_at=token.expires_at,
                created_at=token.issued_at,
            )

    def get(self, token_ref: str) -> SessionRecord | None:
        with self._lock:
            return self._records.get(token_ref)

    def activate(self, token_ref: str) -> bool:
        """Mark a pending record as delivered to its consumer."""
        with self._lock:
            record = self._records.get(token_ref)
            if record is None or record.status is not SessionStatus.PENDING:
                return False
            record.status = SessionStatus.ACTIVE
            record.updated_at = self._clock()
            return True

    def revoke(self, token_ref: str) -> bool:
        with self._lock:
            record = self._records.get(token_ref)
            if record is None or record.status.is_terminal:
                return False
            record.status = SessionStatus.REVOKED
            record.updated_at = self._clock()
        logger.warning("Session %s revoked by operator", token_ref)
        return True

    def sweep(self, now: datetime | None = None) -> int:
        """Expire every live record whose token has lapsed at ``now``.

        Terminal records older than the retention period are dropped in the
        same pass. Returns the number of records moved to expired.
        """
        now = now or self._clock()
        horizon = now - self._retention
        expired = 0
        with self._lock:
            for ref, record in list(self._records.items()):
                if not record.status.is_terminal and record.expires_at <= now:
                    record.status = SessionStatus.EXPIRED
                    record.updated_at = now
                    expired += 1
                elif record.status.is_terminal and record.updated_at <= horizon:
                    del self._records[ref]
        if expired:
            logger.debug("Session sweep expired %d record(s)", expired)
        return expired

    def snapshot(self) -> List[SessionRecord]:
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: r.created_at)
            return [
                SessionRecord(
                    token_ref=r.token_ref,
                    scope=r.scope,
                    consumer_id=r.consumer_id,
                    expires_at=r.expires_at,
                    created_at=r.created_at,
                    status=r.status,
                    updated_at=r.updated_at,
                )
                for r in records
            ]

    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in SessionStatus}
        with self._lock:
            for record in self._records.values():
                totals[record.status.value] += 1
        return totals


async def run_periodic_sweep(
    registry: SessionRegistry,
    interval_seconds: float,
    on_tick: Callable[[], object] | None = None,
) -> None:
    """Sweep ``registry`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            registry.sweep()
            if on_tick is not None:
                on_tick()
        except Exception:
            logger.exception("Session sweep failed")
