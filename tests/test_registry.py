import pytest

from conftest import ScriptedProvider
from vibecheck.exceptions import ConfigurationError, ProviderNotFoundError
from vibecheck.models import ProviderConfig, ProviderSpec, VibeConfig
from vibecheck.providers import AnthropicProvider, LocalProvider, OpenAIProvider, create_provider
from vibecheck.registry import ProviderRegistry, build_registry


@pytest.fixture
def registry():
    return ProviderRegistry()


class TestCreateProvider:
    """Test the provider factory"""

    @pytest.mark.parametrize("provider_type, expected", [
        ("openai", OpenAIProvider),
        ("anthropic", AnthropicProvider),
        ("local", LocalProvider),
    ])
    def test_known_types(self, provider_type, expected):
        assert isinstance(create_provider(provider_type, ProviderConfig(api_key="k")), expected)

    def test_dict_config(self):
        provider = create_provider("openai", {"api_key": "k", "model_name": "gpt-4o-mini"})
        assert provider.model == "gpt-4o-mini"

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match="Unknown provider type: gemini"):
            create_provider("gemini", ProviderConfig())


class TestProviderRegistry:
    """Test registration, default selection and dispatch"""

    def test_first_registration_becomes_default(self, registry):
        a = registry.register("a", ScriptedProvider(label="a"))
        registry.register("b", ScriptedProvider(label="b"))

        assert registry.default_name == "a"
        assert registry.resolve() is a

    def test_make_default_overrides(self, registry):
        registry.register("a", ScriptedProvider(label="a"))
        b = registry.register("b", ScriptedProvider(label="b"), make_default=True)

        assert registry.resolve() is b

    def test_register_from_spec_tuple_and_mapping(self, registry):
        from_spec = registry.register("spec", ProviderSpec(type="anthropic", config=ProviderConfig(api_key="k")))
        from_tuple = registry.register("tuple", ("openai", ProviderConfig(api_key="k")))
        from_mapping = registry.register("mapping", {"type": "local", "config": {"model_name": "llava"}})

        assert isinstance(from_spec, AnthropicProvider)
        assert isinstance(from_tuple, OpenAIProvider)
        assert isinstance(from_mapping, LocalProvider)
        assert registry.names == ["spec", "tuple", "mapping"]

    def test_unknown_type_fails_at_registration(self, registry):
        with pytest.raises(ConfigurationError):
            registry.register("bad", ("gemini", ProviderConfig()))

        assert "bad" not in registry
        assert registry.default_name is None

    def test_set_default(self, registry):
        registry.register("a", ScriptedProvider(label="a"))
        b = registry.register("b", ScriptedProvider(label="b"))

        registry.set_default("b")

        assert registry.resolve() is b

    def test_set_default_unknown(self, registry):
        with pytest.raises(ProviderNotFoundError, match='"missing" is not registered'):
            registry.set_default("missing")

    def test_resolve_empty_registry(self, registry):
        with pytest.raises(ProviderNotFoundError, match="no default provider"):
            registry.resolve()

    def test_resolve_unknown_name(self, registry):
        registry.register("a", ScriptedProvider(label="a"))

        with pytest.raises(ProviderNotFoundError):
            registry.resolve("nope")

    def test_not_found_is_configuration_error(self):
        assert issubclass(ProviderNotFoundError, ConfigurationError)

    @pytest.mark.asyncio
    async def test_evaluate_dispatches_to_named_provider(self, registry, screenshot):
        a = registry.register("a", ScriptedProvider(label="a"))
        b = registry.register("b", ScriptedProvider(label="b"))

        await registry.evaluate(screenshot, "A blue button", provider_name="b")

        assert len(b.calls) == 1
        assert a.calls == []

    @pytest.mark.asyncio
    async def test_evaluate_uses_default(self, registry, screenshot):
        a = registry.register("a", ScriptedProvider(label="a"))
        registry.register("b", ScriptedProvider(label="b"))

        await registry.evaluate(screenshot, "A blue button")

        assert len(a.calls) == 1


class TestBuildRegistry:
    """Test building a registry from VibeConfig"""

    def test_configured_default_wins(self):
        config = VibeConfig(
            default_provider="claude",
            providers={
                "gpt": ProviderSpec(type="openai", config=ProviderConfig(api_key="k")),
                "claude": ProviderSpec(type="anthropic", config=ProviderConfig(api_key="k")),
            },
        )

        registry = build_registry(config)

        assert registry.names == ["gpt", "claude"]
        assert registry.default_name == "claude"
        assert isinstance(registry.resolve(), AnthropicProvider)

    def test_missing_default_falls_back_to_first(self, caplog):
        config = VibeConfig(
            default_provider="nope",
            providers={"gpt": ProviderSpec(type="openai", config=ProviderConfig(api_key="k"))},
        )

        registry = build_registry(config)

        assert registry.default_name == "gpt"
        assert "not configured" in caplog.text
