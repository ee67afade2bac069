"""Factory for realtime providers."""

from __future__ import annotations

import logging

from coach_relay.config import Settings
from coach_relay.errors import ConfigurationError
from coach_relay.services.azure_realtime import AzureRealtimeProvider
from coach_relay.services.openai_realtime import OpenAIRealtimeProvider
from coach_relay.services.realtime_provider import RealtimeProvider
from coach_relay.services.vault import CredentialVault

logger = logging.getLogger(__name__)


def build_provider(settings: Settings, vault: CredentialVault) -> RealtimeProvider:
    try:
        if settings.provider == "azure":
            logger.info("Using Azure OpenAI provider")
            return AzureRealtimeProvider(settings, vault)
        if settings.provider == "openai":
            logger.info("Using OpenAI provider")
            return OpenAIRealtimeProvider(settings, vault)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    logger.error("Unsupported provider configured: %s", settings.provider)
    raise ConfigurationError(f"Unsupported provider: {settings.provider}")
