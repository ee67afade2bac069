"""Custody of the long-lived provider credential."""

from __future__ import annotations

import logging

from pydantic import SecretStr

from coach_relay.config import ProviderName, Settings
from coach_relay.errors import ConfigurationError

logger = logging.getLogger(__name__)

REDACTED = "[redacted]"


class CredentialVault:
    """Read-only holder for the provider secret.

    The secret only ever leaves this object inside an upstream request
    header. It is loaded once and never changes for the life of the process.
    """

    __slots__ = ("_secret", "_provider", "_source")

    def __init__(self, secret: SecretStr, provider: ProviderName, source: str) -> None:
        if not secret.get_secret_value().strip():
            raise ConfigurationError(f"{source} is empty")
        self._secret = secret
        self._provider = provider
        self._source = source

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialVault":
        if settings.provider == "azure":
            secret, source = settings.azure_openai_key, "AZURE_OPENAI_KEY"
        else:
            secret, source = settings.openai_api_key, "OPENAI_API_KEY"

        if secret is None:
            logger.error("%s environment variable is not set", source)
            raise ConfigurationError(f"{source} must be set for {settings.provider} provider")

        logger.info("Loaded %s credential from %s", settings.provider, source)
        return cls(secret, settings.provider, source)

    @property
    def source(self) -> str:
        return self._source

    def authorization_headers(self) -> dict[str, str]:
        value = self._secret.get_secret_value()
        if self._provider == "azure":
            return {"api-key": value}
        return {"Authorization": f"Bearer {value}"}

    def exposes(self, text: str | None) -> bool:
        """True if ``text`` is, or contains, the credential."""
        if not text:
            return False
        return self._secret.get_secret_value() in text

    def redact(self, text: str) -> str:
        """Return ``text`` with every occurrence of the credential masked."""
        return text.replace(self._secret.get_secret_value(), REDACTED)

    def secret_value(self) -> str:
        """The raw secret, for SDK clients that take it as a constructor argument."""
        return self._secret.get_secret_value()

    def __repr__(self) -> str:
        return f"CredentialVault(provider={self._provider!r}, source={self._source!r}, secret='**********')"
