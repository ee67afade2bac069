"""Application configuration for the realtime token relay."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ProviderName = Literal["azure", "openai"]

# OpenAI API endpoints
OPENAI_REALTIME_CLIENT_SECRETS_URL = "https://api.openai.com/v1/realtime/client_secrets"

# OpenAI refuses client secrets shorter than this.
OPENAI_MIN_SECRET_LIFETIME_SECONDS = 10


class Settings(BaseSettings):
    """Runtime configuration loaded from the environment.

    Built once at process start and handed to each component; instances are
    frozen so nothing can rewrite them while serving traffic.
    """

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    app_name: str = Field(default="Coach Realtime Token Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    provider: ProviderName = Field(default="openai", alias="PROVIDER")
    voice_name: str = Field(default="shimmer", alias="VOICE_NAME")
    realtime_model: str = Field(default="gpt-realtime", alias="REALTIME_MODEL")

    # OpenAI credentials
    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_client_secrets_url: str = Field(
        default=OPENAI_REALTIME_CLIENT_SECRETS_URL, alias="OPENAI_CLIENT_SECRETS_URL"
    )

    # Azure OpenAI credentials
    azure_openai_endpoint: str | None = Field(
        default=None, alias="AZURE_OPENAI_ENDPOINT"
    )
    azure_openai_key: SecretStr | None = Field(default=None, alias="AZURE_OPENAI_KEY")
    azure_openai_api_version: str = Field(
        default="2025-04-01-preview", alias="AZURE_OPENAI_API_VERSION"
    )

    # Token policy
    max_token_lifetime_seconds: int = Field(
        default=60, gt=0, le=7200, alias="MAX_TOKEN_LIFETIME_SECONDS"
    )

    # Request gate
    rate_limit_requests: int = Field(default=10, gt=0, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: float = Field(
        default=60.0, gt=0, alias="RATE_LIMIT_WINDOW_SECONDS"
    )
    upstream_timeout_seconds: float = Field(
        default=5.0, gt=0, alias="UPSTREAM_TIMEOUT_SECONDS"
    )
    upstream_max_attempts: int = Field(default=3, ge=1, alias="UPSTREAM_MAX_ATTEMPTS")
    upstream_retry_base_delay_seconds: float = Field(
        default=0.2, ge=0, alias="UPSTREAM_RETRY_BASE_DELAY_SECONDS"
    )
    upstream_retry_max_delay_seconds: float = Field(
        default=2.0, ge=0, alias="UPSTREAM_RETRY_MAX_DELAY_SECONDS"
    )

    # Session registry
    session_sweep_interval_seconds: float = Field(
        default=30.0, gt=0, alias="SESSION_SWEEP_INTERVAL_SECONDS"
    )
    session_retention_seconds: float = Field(
        default=3600.0, gt=0, alias="SESSION_RETENTION_SECONDS"
    )

    # Only honour X-Client-Id and X-Forwarded-For behind a proxy that sets them
    trust_forwarded_headers: bool = Field(
        default=False, alias="TRUST_FORWARDED_HEADERS"
    )

    # Coaching chat relay
    chat_model: str = Field(default="gpt-5-mini", alias="CHAT_MODEL")
    azure_openai_chat_deployment: str | None = Field(
        default=None, alias="AZURE_OPENAI_CHAT_DEPLOYMENT"
    )
    chat_max_completion_tokens: int = Field(
        default=1200, gt=0, alias="CHAT_MAX_COMPLETION_TOKENS"
    )
    chat_rate_limit_requests: int = Field(
        default=30, gt=0, alias="CHAT_RATE_LIMIT_REQUESTS"
    )
    chat_timeout_seconds: float = Field(
        default=60.0, gt=0, alias="CHAT_TIMEOUT_SECONDS"
    )

    # Operator endpoints stay disabled unless this is set
    admin_api_key: SecretStr | None = Field(default=None, alias="ADMIN_API_KEY")

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"], alias="CORS_ORIGINS"
    )

    def get_realtime_sessions_url(self) -> str:
        """Return the upstream endpoint that issues scoped session credentials."""
        if self.provider == "openai":
            return self.openai_client_secrets_url
        if not self.azure_openai_endpoint:
            logger.error("AZURE_OPENAI_ENDPOINT not set but provider is 'azure'")
            raise ValueError("AZURE_OPENAI_ENDPOINT must be set for Azure provider")
        return (
            self.azure_openai_endpoint.rstrip("/")
            + f"/openai/realtimeapi/sessions?api-version={self.azure_openai_api_version}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
