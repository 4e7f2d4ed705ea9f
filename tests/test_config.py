"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, production credential gate, dev-mode warnings,
and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sellerdesk.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


def _production_settings(**overrides) -> Settings:
    values = {
        "production": True,
        "public_base_url": "https://hooks.example.com",
        "twilio_auth_token": "twilio-token",
        "email_webhook_secret": "email-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.webhook_port == 8000
        assert s.public_base_url == ""
        assert s.database_path == Path("data/sellerdesk.db")
        assert s.database_busy_timeout == 5.0
        assert s.twilio_auth_token.get_secret_value() == ""

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("WEBHOOK_PORT", "9090")
        monkeypatch.setenv("DATABASE_PATH", "/tmp/desk.db")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "tok")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.webhook_port == 9090
        assert s.database_path == Path("/tmp/desk.db")
        assert s.twilio_auth_token.get_secret_value() == "tok"

    def test_secrets_hidden_in_repr(self) -> None:
        s = _production_settings()
        assert "twilio-token" not in repr(s)


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------

class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    @pytest.mark.parametrize(
        "override",
        [
            {"twilio_auth_token": ""},
            {"email_webhook_secret": ""},
            {"public_base_url": ""},
        ],
    )
    def test_production_exits_when_missing(self, override: dict[str, str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(_production_settings(**override))

        assert exc_info.value.code == 1

    def test_production_passes_when_complete(self) -> None:
        # Should NOT raise or exit
        validate_credentials(_production_settings())

    def test_dev_mode_warns_without_exiting(self) -> None:
        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------

class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PRODUCTION", raising=False)

        assert get_settings() is get_settings()

    def test_invalid_env_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WEBHOOK_PORT", "not-a-port")

        with pytest.raises(SystemExit) as exc_info:
            get_settings()
        assert exc_info.value.code == 1
