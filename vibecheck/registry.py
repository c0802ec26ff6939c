"""
Provider Registry

Holds named provider instances, tracks the default, and routes
evaluation requests. Build one per test run and pass it to whatever
issues vibe checks.
"""

import logging
from collections.abc import Mapping
from typing import Optional, Union

from .exceptions import ConfigurationError, ProviderNotFoundError
from .models import EvaluationResult, OptionsLike, ProviderSpec, VibeConfig
from .providers import VisionProvider, create_provider
from .providers.base import ImageInput

logger = logging.getLogger(__name__)

ProviderLike = Union[VisionProvider, ProviderSpec, tuple, Mapping]


class ProviderRegistry:
    """
    Named provider instances with a default.

    The first registered provider becomes the default unless another
    registration passes ``make_default=True``.

    Example:
        registry = ProviderRegistry()
        registry.register("openai", ("openai", ProviderConfig()))
        registry.register("claude", AnthropicProvider(), make_default=True)

        result = await registry.evaluate(path, "A blue submit button")
    """

    def __init__(self):
        self._providers: dict[str, VisionProvider] = {}
        self._default: Optional[str] = None

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def names(self) -> list[str]:
        return list(self._providers)

    @property
    def default_name(self) -> Optional[str]:
        return self._default

    def register(self, name: str, provider: ProviderLike, make_default: bool = False) -> VisionProvider:
        """
        Register a provider under ``name``.

        Args:
            name: Unique registry name
            provider: A provider instance, a ProviderSpec, a (type, config)
                      tuple or a {"type": ..., "config": ...} mapping
            make_default: Make this the default provider

        Returns:
            The registered provider instance

        Raises:
            ConfigurationError: If the provider type tag is unknown
        """
        instance = self._build(provider)

        if name in self._providers:
            logger.warning("Replacing registered provider %r", name)
        self._providers[name] = instance

        if make_default or self._default is None:
            self._default = name

        logger.debug("Registered provider %r (%s)", name, instance.name)
        return instance

    def set_default(self, name: str) -> None:
        if name not in self._providers:
            raise ProviderNotFoundError(f'Provider "{name}" is not registered')
        self._default = name

    def resolve(self, name: Optional[str] = None) -> VisionProvider:
        """
        Get a provider by name, or the default provider.

        Raises:
            ProviderNotFoundError: No default is set and no name is given,
                                   or the named provider is not registered
        """
        provider_name = name or self._default

        if not provider_name:
            raise ProviderNotFoundError("No provider specified and no default provider is set")

        try:
            return self._providers[provider_name]
        except KeyError:
            raise ProviderNotFoundError(f'Provider "{provider_name}" is not registered') from None

    async def evaluate(
        self,
        image: ImageInput,
        specification: str,
        options: OptionsLike = None,
        provider_name: Optional[str] = None
    ) -> EvaluationResult:
        """Evaluate with the named (or default) provider"""
        provider = self.resolve(provider_name)
        return await provider.evaluate(image, specification, options)

    @staticmethod
    def _build(provider: ProviderLike) -> VisionProvider:
        if isinstance(provider, VisionProvider):
            return provider

        if isinstance(provider, ProviderSpec):
            return create_provider(provider.type, provider.config)

        if isinstance(provider, tuple):
            if len(provider) != 2:
                raise ConfigurationError("Provider tuple must be (type, config)")
            return create_provider(provider[0], provider[1])

        if isinstance(provider, Mapping):
            return create_provider(provider.get("type"), provider.get("config"))

        raise ConfigurationError(f"Cannot register provider of type {type(provider).__name__}")


def build_registry(config: VibeConfig) -> ProviderRegistry:
    """
    Build a registry from run configuration.

    Registers every configured provider; the configured default wins
    when it is among them.

    Args:
        config: Loaded VibeConfig

    Returns:
        Populated ProviderRegistry
    """
    registry = ProviderRegistry()

    for name, spec in config.providers.items():
        registry.register(name, spec, make_default=(name == config.default_provider))

    if config.default_provider not in registry and len(registry):
        logger.warning(
            "Default provider %r is not configured; using %r",
            config.default_provider, registry.default_name
        )

    return registry
