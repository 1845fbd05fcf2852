"""Configuration management for AgentRelay."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from agentrelay.models import Settings

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".agentrelay"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

API_KEY_ENV_VARS: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


class ConfigError(Exception):
    """Error loading or accessing configuration."""


def get_agentrelay_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load the AgentRelay configuration file.

    Returns:
        Configuration dictionary, empty if file doesn't exist.
    """
    path = config_path or CONFIG_FILE
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
            return config if isinstance(config, dict) else {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}


def find_api_key(provider: str, config_path: Path | None = None) -> str | None:
    """Look up a provider API key.

    Checks in order of priority:
    1. Provider environment variable (e.g. ANTHROPIC_API_KEY)
    2. AgentRelay config file (~/.agentrelay/config.yaml) under ``<provider>.api_key``

    Returns:
        The API key, or None if not configured.
    """
    env_var = API_KEY_ENV_VARS.get(provider, f"{provider.upper()}_API_KEY")
    if key := os.environ.get(env_var):
        return key

    section = get_agentrelay_config(config_path).get(provider)
    if isinstance(section, dict) and (key := section.get("api_key")):
        return str(key)
    return None


def get_api_key(provider: str, config_path: Path | None = None) -> str:
    """Get a provider API key.

    Raises:
        ConfigError: If no API key is found.
    """
    if key := find_api_key(provider, config_path):
        return key
    env_var = API_KEY_ENV_VARS.get(provider, f"{provider.upper()}_API_KEY")
    raise ConfigError(
        f"{provider} API key not found. Set {env_var} environment variable "
        f"or add to ~/.agentrelay/config.yaml under '{provider}.api_key'"
    )


def load_settings(config_path: Path | None = None) -> Settings:
    """Build settings from defaults and the config file's ``agentrelay:`` block.

    Raises:
        ConfigError: If the block does not validate.
    """
    block = get_agentrelay_config(config_path).get("agentrelay") or {}
    if not isinstance(block, dict):
        raise ConfigError("'agentrelay' section of the config file must be a mapping")
    try:
        return Settings.model_validate(block)
    except ValidationError as e:
        raise ConfigError(f"Invalid agentrelay settings: {e}") from e
