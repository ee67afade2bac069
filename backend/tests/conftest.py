"""Shared fixtures for relay tests."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any, Iterable, List

import pytest

from coach_relay.config import Settings
from coach_relay.schemas.sessions import SessionConfig
from coach_relay.schemas.tokens import UpstreamGrant

TEST_SECRET = "sk-test-long-lived-secret-0123456789"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "provider": "openai",
        "openai_api_key": TEST_SECRET,
        "upstream_retry_base_delay_seconds": 0.0,
        "upstream_retry_max_delay_seconds": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def grant(value: str, lifetime_seconds: float = 60) -> UpstreamGrant:
    return UpstreamGrant(
        value=value,
        expires_at=datetime.now(UTC) + timedelta(seconds=lifetime_seconds),
    )


class FakeProvider:
    """Scripted stand-in for the upstream provider.

    Each call consumes the next outcome: an UpstreamGrant is returned, an
    exception is raised. Once the script runs out, fresh tokens are minted.
    """

    def __init__(self, outcomes: Iterable[Any] = (), delay: float = 0.0) -> None:
        self._outcomes: List[Any] = list(outcomes)
        self.delay = delay
        self.calls = 0
        self.configs: List[SessionConfig] = []

    async def mint_session(self, config: SessionConfig) -> UpstreamGrant:
        self.calls += 1
        self.configs.append(config)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._outcomes:
            outcome = self._outcomes.pop(0)
        else:
            outcome = grant(f"ek_generated_{self.calls}")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeCompletions:
    """Stands in for ``client.chat.completions`` of the openai SDK."""

    def __init__(self, chunks: Iterable[str | None] = (), error=None, stream_error=None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.stream_error = stream_error
        self.requests: List[dict[str, Any]] = []

    async def create(self, **kwargs: Any):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return self._stream()

    async def _stream(self):
        for text in self.chunks:
            delta = SimpleNamespace(content=text)
            yield SimpleNamespace(choices=[SimpleNamespace(delta=delta)])
        if self.stream_error is not None:
            raise self.stream_error


class FakeChatClient:
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.completions = FakeCompletions(*args, **kwargs)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
