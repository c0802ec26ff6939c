"""
Configuration Management

Loads configuration from .env files, environment variables and
run-config overrides (pytest ini options, CLI flags) into a VibeConfig.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import VibeConfig


def _deep_merge(base: Mapping, override: Mapping) -> dict:
    """Return a new dict with ``override`` merged into ``base`` recursively"""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _config_from_env() -> dict:
    """Build the environment layer as a plain dict"""
    data: dict[str, Any] = {
        "providers": {
            "openai": {"type": "openai", "config": {"api_key_env_var": "OPENAI_API_KEY"}},
            "anthropic": {"type": "anthropic", "config": {"api_key_env_var": "ANTHROPIC_API_KEY"}},
        },
        "evaluation": {},
    }

    if os.getenv("VIBE_DEFAULT_PROVIDER"):
        data["default_provider"] = os.getenv("VIBE_DEFAULT_PROVIDER")

    if os.getenv("OPENAI_API_KEY"):
        data["providers"]["openai"]["config"]["api_key"] = os.getenv("OPENAI_API_KEY")
    if os.getenv("OPENAI_MODEL"):
        data["providers"]["openai"]["config"]["model_name"] = os.getenv("OPENAI_MODEL")
    if os.getenv("OPENAI_BASE_URL"):
        data["providers"]["openai"]["config"]["base_url"] = os.getenv("OPENAI_BASE_URL")

    if os.getenv("ANTHROPIC_API_KEY"):
        data["providers"]["anthropic"]["config"]["api_key"] = os.getenv("ANTHROPIC_API_KEY")
    if os.getenv("ANTHROPIC_MODEL"):
        data["providers"]["anthropic"]["config"]["model_name"] = os.getenv("ANTHROPIC_MODEL")

    # Local provider is opt-in: only registered when Ollama is configured
    if os.getenv("OLLAMA_HOST") or os.getenv("OLLAMA_MODEL"):
        data["providers"]["local"] = {
            "type": "local",
            "config": {
                "base_url": os.getenv("OLLAMA_HOST", "http://localhost:11434"),
                "model_name": os.getenv("OLLAMA_MODEL", "llava"),
            },
        }

    if os.getenv("VIBE_CONFIDENCE_THRESHOLD"):
        data["evaluation"]["confidence_threshold"] = float(os.getenv("VIBE_CONFIDENCE_THRESHOLD"))
    if os.getenv("VIBE_MAX_RETRIES"):
        data["evaluation"]["max_retries"] = int(os.getenv("VIBE_MAX_RETRIES"))
    if os.getenv("VIBE_INCLUDE_RAW_RESPONSE"):
        data["evaluation"]["include_raw_response"] = _env_bool(os.getenv("VIBE_INCLUDE_RAW_RESPONSE"))

    if os.getenv("VIBE_SCREENSHOTS_DIR"):
        data["screenshots_dir"] = os.getenv("VIBE_SCREENSHOTS_DIR")

    return data


def load_config(
    env_file: Optional[Path] = None,
    overrides: Optional[Mapping] = None
) -> VibeConfig:
    """
    Load configuration from .env file, environment variables and overrides.

    Searches for .env file in:
    1. Provided env_file path
    2. Current directory
    3. User's home directory

    Environment variables already set win over .env values; ``overrides``
    (shaped like VibeConfig) win over both and are deep-merged, so
    ``{"providers": {"openai": {"config": {"model_name": "gpt-4o-mini"}}}}``
    only changes the model.

    Args:
        env_file: Optional path to .env file
        overrides: Run configuration mapping

    Returns:
        VibeConfig with all settings

    Raises:
        ConfigurationError: If the merged configuration is invalid

    Example:
        config = load_config(overrides={"evaluation": {"confidence_threshold": 0.7}})
        registry = build_registry(config)
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
    elif Path(".env").exists():
        load_dotenv(".env")
    elif (Path.home() / ".env").exists():
        load_dotenv(Path.home() / ".env")

    try:
        data = _deep_merge(_config_from_env(), overrides or {})
        return VibeConfig.model_validate(data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid vibe check configuration: {e}") from e
