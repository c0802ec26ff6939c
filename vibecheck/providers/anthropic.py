"""
Anthropic Claude Vision Provider

Implements vibe-check evaluation using Claude's vision capabilities
through the Messages API.
"""

import json
import logging
from typing import Optional

import anthropic

from ..exceptions import TransportError
from ..models import EvaluationOptions
from .base import USER_INSTRUCTION, VisionProvider, media_type

logger = logging.getLogger(__name__)


class AnthropicProvider(VisionProvider):
    """
    Vision provider using Anthropic's Claude models.

    The specification prompt is sent as the system prompt; the
    screenshot goes in the user turn as a base64 image block.

    Example:
        provider = AnthropicProvider(ProviderConfig(api_key="sk-ant-..."))
        result = await provider.evaluate(screenshot_path, "A centered login form")
    """

    env_var = "ANTHROPIC_API_KEY"
    default_model = "claude-3-7-sonnet-latest"

    @property
    def name(self) -> str:
        """Provider name for identification"""
        return "anthropic"

    def _create_client(self, api_key: str) -> anthropic.AsyncAnthropic:
        kwargs = {"api_key": api_key, "max_retries": 0}
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        if self.config.timeout is not None:
            kwargs["timeout"] = self.config.timeout
        return anthropic.AsyncAnthropic(**kwargs)

    def _build_request(self, system_prompt: str, image_data: str, options: EvaluationOptions) -> dict:
        return {
            "model": self.model,
            "system": system_prompt,
            "messages": [{
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": USER_INSTRUCTION
                    },
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": media_type(image_data),
                            "data": image_data
                        }
                    }
                ]
            }],
            **self._request_parameters(options),
        }

    async def _send(
        self,
        api_key: Optional[str],
        system_prompt: str,
        image_data: str,
        options: EvaluationOptions
    ) -> str:
        client = self._create_client(api_key)

        try:
            response = await client.messages.create(
                **self._build_request(system_prompt, image_data, options)
            )
        except anthropic.APIStatusError as e:
            if e.status_code == 401:
                logger.error("[anthropic] Authentication error: Invalid API key. Please check your ANTHROPIC_API_KEY.")
            message = f"API request failed with status {e.status_code}"
            if e.body:
                message += f": {json.dumps(e.body, default=str)}"
            raise TransportError(message, status_code=e.status_code, body=e.body) from e
        except anthropic.APIConnectionError as e:
            raise TransportError(f"Anthropic API connection failed: {e}") from e
        finally:
            await client.close()


        # Claude may return several blocks; the verdict is in the first text block
        for block in response.content or []:
            if getattr(block, "type", None) == "text" and block.text:
                return block.text

        return ""
