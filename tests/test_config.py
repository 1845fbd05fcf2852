"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentrelay.config import ConfigError, find_api_key, get_api_key, load_settings


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "config.yaml"


class TestApiKeys:
    """Tests for credential lookup."""

    def test_env_var_wins(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the environment takes priority over the config file."""
        config_file.write_text("anthropic:\n  api_key: from-file\n")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        assert find_api_key("anthropic", config_file) == "from-env"

    def test_config_file(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the config file is used when the variable is unset."""
        config_file.write_text("openai:\n  api_key: from-file\n")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert find_api_key("openai", config_file) == "from-file"

    def test_missing_key(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a missing key is None, or ConfigError when required."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert find_api_key("openai", config_file) is None
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            get_api_key("openai", config_file)


class TestLoadSettings:
    """Tests for settings loading."""

    def test_defaults_without_file(self, config_file: Path) -> None:
        """Test defaults when there is no config file."""
        settings = load_settings(config_file)
        assert settings.provider_priority == ["anthropic", "openai"]
        assert settings.retry.max_retries == 2
        assert settings.step.max_retries == 3
        assert settings.step.timeout == 120.0
        assert settings.throttle.min_interval == 2.0
        assert settings.breaker_config_for(0).failure_threshold == 5
        assert settings.breaker_config_for(1).reset_timeout == 30

    def test_overrides_from_file(self, config_file: Path) -> None:
        """Test the ``agentrelay:`` block overrides defaults."""
        config_file.write_text(
            "agentrelay:\n"
            "  provider_priority: [openai]\n"
            "  step:\n"
            "    max_retries: 5\n"
            "  usage_limits:\n"
            "    daily_requests: 50\n"
        )
        settings = load_settings(config_file)
        assert settings.provider_priority == ["openai"]
        assert settings.step.max_retries == 5
        assert settings.usage_limits.daily_requests == 50

    def test_invalid_settings(self, config_file: Path) -> None:
        """Test out-of-range values raise ConfigError."""
        config_file.write_text("agentrelay:\n  step:\n    max_retries: 0\n")
        with pytest.raises(ConfigError, match="Invalid agentrelay settings"):
            load_settings(config_file)

    def test_unreadable_yaml_is_ignored(self, config_file: Path) -> None:
        """Test a broken config file falls back to defaults."""
        config_file.write_text("agentrelay: [unclosed\n")
        assert load_settings(config_file).retry.max_retries == 2
