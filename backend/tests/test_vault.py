"""Tests for configuration loading and credential custody."""

import pytest
from pydantic import ValidationError

from coach_relay.errors import ConfigurationError
from coach_relay.services.vault import CredentialVault

from conftest import TEST_SECRET, make_settings


class TestSettings:

    def test_defaults_match_token_policy(self):
        settings = make_settings()
        assert settings.max_token_lifetime_seconds == 60
        assert settings.rate_limit_requests == 10
        assert settings.rate_limit_window_seconds == 60
        assert settings.upstream_timeout_seconds == 5
        assert settings.upstream_max_attempts == 3

    def test_settings_are_immutable(self):
        settings = make_settings()
        with pytest.raises(ValidationError):
            settings.rate_limit_requests = 1000

    def test_invalid_numbers_fail_validation(self):
        with pytest.raises(ValidationError):
            make_settings(rate_limit_requests=0)
        with pytest.raises(ValidationError):
            make_settings(upstream_timeout_seconds=-1)

    def test_token_lifetime_is_capped_at_provider_maximum(self):
        assert make_settings(max_token_lifetime_seconds=7200).max_token_lifetime_seconds == 7200
        with pytest.raises(ValidationError):
            make_settings(max_token_lifetime_seconds=7201)

    def test_forwarded_headers_are_untrusted_by_default(self):
        assert make_settings().trust_forwarded_headers is False

    def test_secret_is_masked_in_repr(self):
        assert TEST_SECRET not in repr(make_settings())

    def test_azure_sessions_url(self):
        settings = make_settings(
            provider="azure",
            azure_openai_endpoint="https://coach.openai.azure.com/",
            azure_openai_api_version="2025-04-01-preview",
        )
        assert settings.get_realtime_sessions_url() == (
            "https://coach.openai.azure.com/openai/realtimeapi/sessions"
            "?api-version=2025-04-01-preview"
        )


class TestCredentialVault:

    def test_missing_openai_key_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            CredentialVault.from_settings(make_settings(openai_api_key=None))

    def test_blank_key_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            CredentialVault.from_settings(make_settings(openai_api_key="   "))

    def test_azure_uses_its_own_key(self):
        with pytest.raises(ConfigurationError, match="AZURE_OPENAI_KEY"):
            CredentialVault.from_settings(make_settings(provider="azure"))

        vault = CredentialVault.from_settings(
            make_settings(provider="azure", azure_openai_key="azure-secret")
        )
        assert vault.authorization_headers() == {"api-key": "azure-secret"}

    def test_openai_bearer_header(self):
        vault = CredentialVault.from_settings(make_settings())
        assert vault.authorization_headers() == {"Authorization": f"Bearer {TEST_SECRET}"}

    def test_exposes(self):
        vault = CredentialVault.from_settings(make_settings())
        assert vault.exposes(TEST_SECRET)
        assert vault.exposes(f"Bearer {TEST_SECRET}")
        assert not vault.exposes("ek_scoped_token")
        assert not vault.exposes(None)

    def test_redact_masks_every_occurrence(self):
        vault = CredentialVault.from_settings(make_settings())
        text = f"key={TEST_SECRET} again {TEST_SECRET}"
        assert vault.redact(text) == "key=[redacted] again [redacted]"
        assert vault.redact("nothing secret") == "nothing secret"

    def test_repr_never_shows_secret(self):
        vault = CredentialVault.from_settings(make_settings())
        assert TEST_SECRET not in repr(vault)
        assert TEST_SECRET not in str(vault)
