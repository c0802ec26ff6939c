import base64

import pytest
from pydantic import ValidationError

from conftest import PNG_BYTES, VALID_REPLY, ScriptedProvider
from vibecheck.exceptions import ArtifactError, ConfigurationError, TransportError
from vibecheck.models import EvaluationOptions, ProviderConfig
from vibecheck.providers.base import media_type
from vibecheck.providers.openai import OpenAIProvider


class TestRetryLoop:
    """Test retry with exponential backoff"""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, screenshot, no_sleep):
        provider = ScriptedProvider()

        result = await provider.evaluate(screenshot, "A blue button")

        assert result.verdict == "yes"
        assert len(provider.calls) == 1
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [2, 3, 4])
    async def test_succeeds_on_attempt_k(self, screenshot, no_sleep, k):
        failures = [TransportError(f"boom {i}") for i in range(k - 1)]
        provider = ScriptedProvider(failures + [VALID_REPLY])

        result = await provider.evaluate(screenshot, "A blue button", {"max_retries": 4})

        assert result.confidence == 0.92
        assert len(provider.calls) == k
        assert [call.args[0] for call in no_sleep.await_args_list] == [1.0, 2.0, 4.0][: k - 1]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self, screenshot, no_sleep):
        errors = [TransportError("first"), TransportError("second"), TransportError("last")]
        provider = ScriptedProvider(errors)

        with pytest.raises(TransportError) as exc_info:
            await provider.evaluate(screenshot, "A blue button", EvaluationOptions(max_retries=3))

        assert exc_info.value is errors[-1]
        assert len(provider.calls) == 3
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_generic_errors_are_retried(self, screenshot, no_sleep):
        provider = ScriptedProvider([RuntimeError("flaky")])

        with pytest.raises(RuntimeError, match="flaky"):
            await provider.evaluate(screenshot, "A blue button", {"max_retries": 2})

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_max_retries_one_means_single_attempt(self, screenshot, no_sleep):
        provider = ScriptedProvider([TransportError("down")])

        with pytest.raises(TransportError):
            await provider.evaluate(screenshot, "A blue button", {"max_retries": 1})

        assert len(provider.calls) == 1
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_reply_is_not_retried(self, screenshot, no_sleep):
        provider = ScriptedProvider(["total garbage", VALID_REPLY])

        result = await provider.evaluate(screenshot, "A blue button", {"max_retries": 3})

        assert result.verdict == "no"
        assert result.confidence == 0
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_negative_verdict_is_not_retried(self, screenshot, no_sleep):
        provider = ScriptedProvider(['{"verdict": "no", "confidence": 0.9}'])

        result = await provider.evaluate(screenshot, "A blue button", {"max_retries": 3})

        assert result.verdict == "no"
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_provider_default_retries(self, screenshot, no_sleep):
        provider = ScriptedProvider([TransportError("down")], config=ProviderConfig(default_max_retries=2))

        with pytest.raises(TransportError):
            await provider.evaluate(screenshot, "A blue button")

        assert len(provider.calls) == 2


class TestArtifactChecks:
    """Test pre-flight and read failures for the screenshot"""

    @pytest.mark.asyncio
    async def test_missing_screenshot_fails_before_any_call(self, tmp_path, no_sleep):
        provider = ScriptedProvider()

        with pytest.raises(ArtifactError, match="does not exist"):
            await provider.evaluate(tmp_path / "missing.png", "A blue button")

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_missing_screenshot_is_not_retried_when_check_skipped(self, tmp_path, no_sleep):
        provider = ScriptedProvider(config=ProviderConfig(check_artifact=False))

        with pytest.raises(ArtifactError, match="Failed to read image file"):
            await provider.evaluate(tmp_path / "missing.png", "A blue button", {"max_retries": 3})

        assert provider.calls == []
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_file_is_rejected(self, tmp_path, no_sleep):
        empty = tmp_path / "empty.png"
        empty.write_bytes(b"")

        with pytest.raises(ArtifactError):
            await ScriptedProvider().evaluate(empty, "A blue button")

    @pytest.mark.asyncio
    async def test_accepts_string_path(self, screenshot, no_sleep):
        result = await ScriptedProvider().evaluate(str(screenshot), "A blue button")
        assert result.verdict == "yes"

    @pytest.mark.asyncio
    async def test_accepts_bytes(self, no_sleep):
        provider = ScriptedProvider()

        await provider.evaluate(PNG_BYTES, "A blue button")

        assert provider.calls[0]["image_data"] == base64.b64encode(PNG_BYTES).decode("utf-8")


class TestRequestConstruction:
    """Test prompt and option handling shared by all providers"""

    @pytest.mark.asyncio
    async def test_specification_embedded_verbatim(self, screenshot, no_sleep):
        provider = ScriptedProvider()
        spec = 'A "Submit" button, 44px tall, with {braces} intact'

        await provider.evaluate(screenshot, spec)

        assert spec in provider.calls[0]["system_prompt"]

    @pytest.mark.asyncio
    async def test_empty_specification_rejected(self, screenshot, no_sleep):
        with pytest.raises(ValidationError):
            await ScriptedProvider().evaluate(screenshot, "   ")

    @pytest.mark.asyncio
    async def test_options_merged_with_provider_defaults(self, screenshot, no_sleep):
        provider = ScriptedProvider(config=ProviderConfig(default_confidence_threshold=0.6))

        await provider.evaluate(screenshot, "A blue button", {"model_parameters": {"top_p": 0.5}})

        options = provider.calls[0]["options"]
        assert options.confidence_threshold == 0.6
        assert options.max_retries == 3
        assert options.include_raw_response is False
        assert options.model_parameters == {"top_p": 0.5}

    def test_request_parameters_defaults_and_overrides(self):
        provider = ScriptedProvider()

        defaults = provider._request_parameters(provider.resolve_options())
        overridden = provider._request_parameters(
            provider.resolve_options({"model_parameters": {"temperature": 0.0, "max_tokens": 300, "seed": 7}})
        )

        assert defaults == {"temperature": 0.2, "max_tokens": 1500}
        assert overridden == {"temperature": 0.0, "max_tokens": 300, "seed": 7}

    @pytest.mark.asyncio
    async def test_raw_response_toggle(self, screenshot, no_sleep):
        provider = ScriptedProvider()

        without_raw = await provider.evaluate(screenshot, "A blue button", {"include_raw_response": False})
        with_raw = await provider.evaluate(screenshot, "A blue button", {"include_raw_response": True})

        assert without_raw.raw_response is None
        assert with_raw.raw_response == VALID_REPLY

    @pytest.mark.parametrize("data, expected", [
        (PNG_BYTES, "image/png"),
        (b"\xff\xd8\xff\xe0\x00\x10JFIF", "image/jpeg"),
        (b"GIF87a\x01\x00\x01\x00", "image/gif"),
        (b"RIFF\x24\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"BM", "image/png"),
    ])
    def test_media_type_from_magic_number(self, data, expected):
        assert media_type(base64.b64encode(data).decode("utf-8")) == expected


class TestApiKeyResolution:
    """Test API key lookup at construction and enforcement at call time"""

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "from-env")
        provider = OpenAIProvider(ProviderConfig(api_key="explicit"))
        assert provider.config.api_key == "explicit"

    def test_key_from_default_env_var(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "from-env")
        provider = OpenAIProvider()
        assert provider.config.api_key == "from-env"
        assert provider.is_available()

    def test_key_from_custom_env_var(self, monkeypatch):
        monkeypatch.setenv("MY_GATEWAY_KEY", "gateway")
        provider = OpenAIProvider(ProviderConfig(api_key_env_var="MY_GATEWAY_KEY"))
        assert provider.config.api_key == "gateway"

    def test_missing_key_only_warns_at_construction(self, monkeypatch, caplog):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        provider = OpenAIProvider()

        assert not provider.is_available()
        assert "No API key provided" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_key_fails_at_call_time_without_retry(self, monkeypatch, screenshot, no_sleep):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        provider = OpenAIProvider()

        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            await provider.evaluate(screenshot, "A blue button", {"max_retries": 3})

        no_sleep.assert_not_called()

    def test_config_not_shared_with_caller(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "from-env")
        config = ProviderConfig()

        OpenAIProvider(config)

        assert config.api_key is None
