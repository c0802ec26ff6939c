"""
Local LLM Vision Provider

Implements vibe-check evaluation using local LLMs via Ollama.
Supports LLaVA, BakLLaVA, and other vision-capable local models.
"""

import asyncio
from typing import Optional

import requests

from ..exceptions import TransportError
from ..models import EvaluationOptions, ProviderConfig
from .base import USER_INSTRUCTION, VisionProvider

DEFAULT_HOST = "http://localhost:11434"


class LocalProvider(VisionProvider):
    """
    Vision provider using local LLMs through Ollama.

    Fully offline, no API key. ``base_url`` is the Ollama host.

    Requirements:
    - Ollama installed (https://ollama.ai/)
    - Vision model pulled (e.g., `ollama pull llava`)

    Example:
        provider = LocalProvider(ProviderConfig(base_url="http://localhost:11434", model_name="llava"))
        result = await provider.evaluate(screenshot_path, "A green success toast")
    """

    default_model = "llava"
    requires_api_key = False

    def __init__(self, config: Optional[ProviderConfig] = None):
        super().__init__(config)
        self.host = (self.config.base_url or DEFAULT_HOST).rstrip("/")

    @property
    def name(self) -> str:
        """Provider name for identification"""
        return "local"

    def is_available(self) -> bool:
        """
        Check if Ollama server is running.

        Returns:
            True if server is reachable, False otherwise
        """
        try:
            response = requests.get(f"{self.host}/api/tags", timeout=2)
            return response.status_code == 200
        except requests.RequestException:
            return False

    def _build_request(self, system_prompt: str, image_data: str, options: EvaluationOptions) -> dict:
        parameters = self._request_parameters(options)
        # Ollama calls the token ceiling num_predict
        parameters.setdefault("num_predict", parameters.pop("max_tokens"))

        return {
            "model": self.model,
            "system": system_prompt,
            "prompt": USER_INSTRUCTION,
            "images": [image_data],
            "stream": False,
            "format": "json",
            "options": parameters
        }

    async def _send(
        self,
        api_key: Optional[str],
        system_prompt: str,
        image_data: str,
        options: EvaluationOptions
    ) -> str:
        try:
            response = await asyncio.to_thread(
                requests.post,
                f"{self.host}/api/generate",
                json=self._build_request(system_prompt, image_data, options),
                timeout=self.config.timeout or 120  # Local models can be slow
            )
        except requests.RequestException as e:
            raise TransportError(f"Failed to connect to Ollama at {self.host}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"API request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text
            )

        return response.json().get("response", "")
