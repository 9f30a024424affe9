"""Tests for environment-driven settings."""

import pytest

from dpwtool.config.settings import Environment, LogLevel, Settings, Timeouts, get_settings


class TestDefaults:
    """Defaults mirror the production plugin."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DPW_API_BASE_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.DPW_API_BASE_URL == "https://app.spatialcollective.com/api"
        assert settings.TM_INTEGRATION_ENABLED is False
        assert settings.LOG_LEVEL == LogLevel.INFO
        assert settings.ENVIRONMENT == Environment.DEV
        assert settings.is_production is False

    def test_derived_timeouts(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.json_timeouts == Timeouts(connect=10.0, read=10.0)
        assert settings.submit_timeouts == Timeouts(connect=15.0, read=15.0)
        assert settings.upload_timeouts == Timeouts(connect=30.0, read=30.0)
        assert settings.download_timeouts == Timeouts(connect=10.0, read=30.0)

    def test_user_agent(self) -> None:
        assert Settings(_env_file=None, CURRENT_VERSION="3.1.0-BETA").user_agent == "DPW-JOSM-Plugin/3.1.0-BETA"


class TestEnvironment:
    """Values come from the environment, case-insensitively."""

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("dpw_api_base_url", "https://staging.test/api")
        monkeypatch.setenv("ENVIRONMENT", "prod")
        monkeypatch.setenv("READ_TIMEOUT_S", "2.5")
        settings = get_settings()
        assert settings.DPW_API_BASE_URL == "https://staging.test/api"
        assert settings.is_production is True
        assert settings.json_timeouts.read == 2.5

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError):
            Settings(_env_file=None)


class TestTimeouts:
    """Timeout bundles live with the configuration they are derived from."""

    def test_defined_in_config_layer(self) -> None:
        assert Timeouts.__module__ == "dpwtool.config.settings"

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            Timeouts(connect=1.0, read=2.0).read = 3.0  # type: ignore[misc]
