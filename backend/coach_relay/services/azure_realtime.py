"""Azure OpenAI realtime helper."""

from __future__ import annotations

import logging

import aiohttp

from coach_relay.config import Settings
from coach_relay.errors import UpstreamTimeout, UpstreamUnavailable
from coach_relay.schemas.sessions import SessionConfig
from coach_relay.schemas.tokens import UpstreamGrant
from coach_relay.services.realtime_provider import parse_expiry, raise_for_upstream_status
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)


class AzureRealtimeProvider:
    def __init__(self, settings: Settings, vault: CredentialVault) -> None:
        self._url = settings.get_realtime_sessions_url()
        self._vault = vault
        self._timeout = aiohttp.ClientTimeout(total=settings.upstream_timeout_seconds)

    def build_payload(self, config: SessionConfig) -> dict:
        payload = {
            "model": config.model,
            "voice": config.voice,
            "instructions": config.instructions,
            "modalities": config.modalities or ["audio", "text"],
        }
        if config.turn_detection:
            payload["turn_detection"] = config.turn_detection
        if config.input_audio_transcription:
            payload["input_audio_transcription"] = config.input_audio_transcription
        return payload

    async def mint_session(self, config: SessionConfig) -> UpstreamGrant:
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as client:
                async with client.post(
                    self._url,
                    headers={
                        **self._vault.authorization_headers(),
                        "Content-Type": "application/json",
                    },
                    json=self.build_payload(config),
                ) as response:
                    if response.status != 200:
                        raise_for_upstream_status("Azure", response.status, await response.text())
                    data = await response.json(content_type=None)
        except TimeoutError as exc:
            logger.warning("Azure session mint timed out after %ss", self._timeout.total)
            raise UpstreamTimeout("Azure session endpoint timed out") from exc
        except aiohttp.ClientError as exc:
            logger.warning("Azure session mint network error: %s", type(exc).__name__)
            raise UpstreamUnavailable("Azure session endpoint unreachable") from exc
        except ValueError as exc:
            logger.error("Azure session response was not JSON")
            raise UpstreamUnavailable("Azure returned an unreadable response") from exc

        client_secret = data.get("client_secret") if isinstance(data, dict) else None
        if not isinstance(client_secret, dict) or not isinstance(client_secret.get("value"), str):
            logger.error("Azure response missing 'client_secret.value'")
            raise UpstreamUnavailable("Azure response missing client_secret.value")

        return UpstreamGrant(
            value=client_secret["value"],
            expires_at=parse_expiry(client_secret.get("expires_at")),
        )
