"""
Vision Provider Implementations

Pluggable vision model providers following a common interface.
Supports multiple backends: OpenAI, Anthropic Claude, Local LLMs.
"""

from typing import Optional

from ..exceptions import ConfigurationError
from ..models import ProviderConfig
from .base import VisionProvider
from .anthropic import AnthropicProvider
from .openai import OpenAIProvider
from .local import LocalProvider

__all__ = [
    "VisionProvider",
    "AnthropicProvider",
    "OpenAIProvider",
    "LocalProvider",
    "PROVIDER_TYPES",
    "create_provider",
]

PROVIDER_TYPES = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "local": LocalProvider,
}


def create_provider(provider_type: str, config: Optional[ProviderConfig] = None) -> VisionProvider:
    """
    Factory function to build a provider from its type tag.

    Args:
        provider_type: One of "openai", "anthropic", or "local"
        config: Provider configuration (API key, model, defaults)

    Returns:
        Configured vision provider instance

    Raises:
        ConfigurationError: If the provider type is unknown

    Example:
        provider = create_provider("anthropic", ProviderConfig(model_name="claude-3-7-sonnet-latest"))
        result = await provider.evaluate(screenshot_path, specification)
    """
    try:
        provider_class = PROVIDER_TYPES[provider_type]
    except KeyError:
        raise ConfigurationError(
            f"Unknown provider type: {provider_type}. "
            f"Choose from: {', '.join(PROVIDER_TYPES)}"
        ) from None

    if isinstance(config, dict):
        config = ProviderConfig.model_validate(config)

    return provider_class(config)
