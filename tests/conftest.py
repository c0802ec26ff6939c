import base64
from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest

from vibecheck.models import EvaluationOptions, ProviderConfig
from vibecheck.providers.base import VisionProvider

PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

VALID_REPLY = '{"verdict": "yes", "confidence": 0.92, "reasoning": "Blue button with white text"}'


class ScriptedProvider(VisionProvider):
    """Provider whose replies (or exceptions) are scripted per attempt"""

    requires_api_key = False

    def __init__(self, replies=None, config: Optional[ProviderConfig] = None, label: str = "scripted"):
        self._label = label
        super().__init__(config)
        self.replies = list(replies or [VALID_REPLY])
        self.calls = []

    @property
    def name(self) -> str:
        return self._label

    async def _send(self, api_key, system_prompt, image_data, options: EvaluationOptions) -> str:
        self.calls.append({"system_prompt": system_prompt, "image_data": image_data, "options": options})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def screenshot(tmp_path):
    """Small PNG on disk"""
    path = tmp_path / "button.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace backoff sleeps with a recording mock"""
    sleep = AsyncMock()
    monkeypatch.setattr("vibecheck.providers.base.asyncio.sleep", sleep)
    return sleep


@pytest.fixture
def clean_env(monkeypatch):
    """Remove provider and vibe settings from the environment"""
    for name in (
        "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL", "ANTHROPIC_MODEL",
        "OLLAMA_HOST", "OLLAMA_MODEL", "VIBE_DEFAULT_PROVIDER", "VIBE_CONFIDENCE_THRESHOLD",
        "VIBE_MAX_RETRIES", "VIBE_INCLUDE_RAW_RESPONSE", "VIBE_SCREENSHOTS_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("vibecheck.config.load_dotenv", Mock())


def openai_completion(content: str):
    """Shape of an openai ChatCompletion as far as the provider reads it"""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def anthropic_message(text: str):
    """Shape of an anthropic Message as far as the provider reads it"""
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])
