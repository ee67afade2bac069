"""Tests for session bookkeeping."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from coach_relay.schemas.tokens import MintedToken, SessionStatus, TokenScope, token_reference
from coach_relay.services.session_registry import SessionRegistry, run_periodic_sweep

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def minted(value: str = "ek_one", lifetime: int = 60, issued_at: datetime = T0) -> MintedToken:
    return MintedToken(
        value=value,
        issued_at=issued_at,
        expires_at=issued_at + timedelta(seconds=lifetime),
        scope=TokenScope.REALTIME_SESSION,
        consumer_id="10.0.0.1",
    )


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry(clock=lambda: T0)


class TestRecord:

    def test_record_creates_pending_entry(self, registry):
        token = minted()
        registry.record(token)

        record = registry.get(token.ref)
        assert record.status is SessionStatus.PENDING
        assert record.expires_at == token.expires_at
        assert record.consumer_id == "10.0.0.1"

    def test_record_is_idempotent(self, registry):
        token = minted()
        registry.record(token)
        registry.activate(token.ref)
        registry.record(token)

        assert len(registry) == 1
        assert registry.get(token.ref).status is SessionStatus.ACTIVE

    def test_reference_does_not_contain_token_value(self, registry):
        token = minted("ek_super_secret_value")
        registry.record(token)

        assert token.ref == token_reference("ek_super_secret_value")
        assert "ek_super_secret_value" not in token.ref
        assert "ek_super_secret_value" not in repr(registry.snapshot())


class TestSweep:

    def test_expires_only_after_expiry(self, registry):
        token = minted(lifetime=60)
        registry.record(token)

        assert registry.sweep(T0 + timedelta(seconds=59)) == 0
        assert registry.get(token.ref).status is SessionStatus.PENDING

        assert registry.sweep(T0 + timedelta(seconds=60)) == 1
        assert registry.get(token.ref).status is SessionStatus.EXPIRED

    def test_sweep_expires_active_records(self, registry):
        token = minted()
        registry.record(token)
        registry.activate(token.ref)

        assert registry.sweep(T0 + timedelta(minutes=5)) == 1
        assert registry.get(token.ref).status is SessionStatus.EXPIRED

    def test_sweep_does_not_recount_expired_records(self, registry):
        registry.record(minted())
        later = T0 + timedelta(minutes=2)
        assert registry.sweep(later) == 1
        assert registry.sweep(later) == 0

    def test_sweep_leaves_revoked_records_alone(self, registry):
        token = minted()
        registry.record(token)
        registry.revoke(token.ref)

        assert registry.sweep(T0 + timedelta(minutes=2)) == 0
        assert registry.get(token.ref).status is SessionStatus.REVOKED

    def test_terminal_records_are_dropped_after_retention(self):
        registry = SessionRegistry(retention=timedelta(minutes=10), clock=lambda: T0)
        token = minted()
        registry.record(token)
        registry.sweep(T0 + timedelta(minutes=1))

        registry.sweep(T0 + timedelta(minutes=5))
        assert token.ref in registry

        registry.sweep(T0 + timedelta(minutes=12))
        assert token.ref not in registry


class TestRevoke:

    def test_revoke_live_record(self, registry):
        token = minted()
        registry.record(token)

        assert registry.revoke(token.ref) is True
        assert registry.get(token.ref).status is SessionStatus.REVOKED

    def test_revoke_unknown_reference(self, registry):
        assert registry.revoke("does-not-exist") is False

    def test_expired_records_are_never_resurrected(self, registry):
        token = minted()
        registry.record(token)
        registry.sweep(T0 + timedelta(minutes=2))

        assert registry.revoke(token.ref) is False
        assert registry.activate(token.ref) is False
        assert registry.get(token.ref).status is SessionStatus.EXPIRED


def test_counts_by_status(registry):
    first, second, third = minted("a"), minted("b"), minted("c", lifetime=600)
    for token in (first, second, third):
        registry.record(token)
    registry.activate(second.ref)
    registry.revoke(first.ref)

    assert registry.counts() == {"pending": 1, "active": 1, "expired": 0, "revoked": 1}


async def test_periodic_sweep_runs_until_cancelled():
    past = datetime.now(UTC) - timedelta(minutes=5)
    registry = SessionRegistry()
    token = minted(issued_at=past)
    registry.record(token)
    ticks = []

    task = asyncio.create_task(
        run_periodic_sweep(registry, 0.01, on_tick=lambda: ticks.append(1))
    )
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert ticks
    assert registry.get(token.ref).status is SessionStatus.EXPIRED
