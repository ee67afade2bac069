"""OpenAI realtime helper."""

from __future__ import annotations

import logging

import aiohttp

from coach_relay.config import OPENAI_MIN_SECRET_LIFETIME_SECONDS, Settings
from coach_relay.errors import UpstreamTimeout, UpstreamUnavailable
from coach_relay.schemas.sessions import SessionConfig
from coach_relay.schemas.tokens import UpstreamGrant
from coach_relay.services.realtime_provider import parse_expiry, raise_for_upstream_status
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)


class OpenAIRealtimeProvider:
    """Provider for OpenAI's Realtime API (GA client_secrets interface)."""

    def __init__(self, settings: Settings, vault: CredentialVault) -> None:
        self._url = settings.get_realtime_sessions_url()
        self._vault = vault
        self._timeout = aiohttp.ClientTimeout(total=settings.upstream_timeout_seconds)
        self._lifetime_seconds = max(
            settings.max_token_lifetime_seconds, OPENAI_MIN_SECRET_LIFETIME_SECONDS
        )

    def build_payload(self, config: SessionConfig) -> dict:
        session: dict = {
            "type": "realtime",
            "model": config.model,
            "instructions": config.instructions,
        }

        audio_config: dict = {"output": {"voice": config.voice}}
        if config.turn_detection:
            audio_config["input"] = {"turn_detection": config.turn_detection}
        if config.input_audio_transcription:
            audio_config.setdefault("input", {})["transcription"] = {
                "model": config.input_audio_transcription.get("model", "whisper-1")
            }
        session["audio"] = audio_config

        return {
            # Ask for the shortest secret we are willing to hand out
            "expires_after": {
                "anchor": "created_at",
                "seconds": self._lifetime_seconds,
            },
            "session": session,
        }

    async def mint_session(self, config: SessionConfig) -> UpstreamGrant:
        payload = self.build_payload(config)
        logger.debug("OpenAI session config: model=%s voice=%s", config.model, config.voice)

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as client:
                async with client.post(
                    self._url,
                    headers={
                        **self._vault.authorization_headers(),
                        "Content-Type": "application/json",
                    },
                    json=payload,
                ) as response:
                    if response.status != 200:
                        raise_for_upstream_status("OpenAI", response.status, await response.text())
                    data = await response.json(content_type=None)
        except TimeoutError as exc:
            logger.warning("OpenAI session mint timed out after %ss", self._timeout.total)
            raise UpstreamTimeout("OpenAI session endpoint timed out") from exc
        except aiohttp.ClientError as exc:
            logger.warning("OpenAI session mint network error: %s", type(exc).__name__)
            raise UpstreamUnavailable("OpenAI session endpoint unreachable") from exc
        except ValueError as exc:
            logger.error("OpenAI session response was not JSON")
            raise UpstreamUnavailable("OpenAI returned an unreadable response") from exc

        ephemeral_key = data.get("value") if isinstance(data, dict) else None
        if not ephemeral_key or not isinstance(ephemeral_key, str):
            logger.error("OpenAI response missing 'value' field")
            raise UpstreamUnavailable("OpenAI response missing value")

        return UpstreamGrant(value=ephemeral_key, expires_at=parse_expiry(data.get("expires_at")))
