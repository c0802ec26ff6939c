"""
OpenAI Vision Provider

Implements vibe-check evaluation using OpenAI's chat completions API
with image input. Works with gpt-4o and with any OpenAI-compatible
server reachable through ``base_url``.
"""

import json
import logging
from typing import Optional

import openai

from ..exceptions import TransportError
from ..models import EvaluationOptions
from .base import USER_INSTRUCTION, VisionProvider, media_type

logger = logging.getLogger(__name__)


class OpenAIProvider(VisionProvider):
    """
    Vision provider using OpenAI's GPT-4o family.

    Example:
        provider = OpenAIProvider(ProviderConfig(api_key="sk-..."))
        result = await provider.evaluate(screenshot_path, "A red error banner")
    """

    env_var = "OPENAI_API_KEY"
    default_model = "gpt-4o"

    @property
    def name(self) -> str:
        """Provider name for identification"""
        return "openai"

    def _create_client(self, api_key: str) -> openai.AsyncOpenAI:
        # One HTTP call per attempt: retries belong to the evaluation runner
        kwargs = {"api_key": api_key, "max_retries": 0}
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        if self.config.timeout is not None:
            kwargs["timeout"] = self.config.timeout
        return openai.AsyncOpenAI(**kwargs)

    def _build_request(self, system_prompt: str, image_data: str, options: EvaluationOptions) -> dict:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": system_prompt
                },
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": USER_INSTRUCTION
                        },
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:{media_type(image_data)};base64,{image_data}"
                            }
                        }
                    ]
                }
            ],
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
            response = await client.chat.completions.create(
                **self._build_request(system_prompt, image_data, options)
            )
        except openai.APIStatusError as e:
            if e.status_code == 401:
                logger.error("[openai] Authentication error: Invalid API key. Please check your OPENAI_API_KEY.")
            raise _status_error(e) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"OpenAI API connection failed: {e}") from e
        finally:
            await client.close()


        if not response.choices:
            return ""

        return response.choices[0].message.content or ""


def _status_error(e: openai.APIStatusError) -> TransportError:
    message = f"API request failed with status {e.status_code}"
    body = e.body
    error = body.get("error", body) if isinstance(body, dict) else body
    if error:
        message += f": {json.dumps(error, default=str)}"
    return TransportError(message, status_code=e.status_code, body=body)
