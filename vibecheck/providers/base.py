"""
Base Vision Provider Interface

Abstract base class defining the contract for vision model providers,
plus the vendor-agnostic evaluation runner: option merging, artifact
checks and retry with exponential backoff. Subclasses only implement
a single request/response round-trip.
"""

import asyncio
import base64
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from ..exceptions import ArtifactError, ConfigurationError
from ..models import (
    DEFAULT_MAX_TOKENS,
    HARD_DEFAULTS,
    EvaluationOptions,
    EvaluationRequest,
    EvaluationResult,
    OptionsLike,
    ProviderConfig,
    merge_options,
)
from ..parsing import parse_response

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 1.0

USER_INSTRUCTION = "Evaluate if this UI element matches the specification."

ImageInput = Union[str, Path, bytes]

# Magic numbers of the formats vision APIs accept; anything else is sent as PNG
IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def media_type(image_data: str) -> str:
    """
    Detect the media type of base64-encoded image data.

    Example:
        media_type(base64.b64encode(png_bytes).decode())  # 'image/png'
    """
    head = base64.b64decode(image_data[:16])
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime in IMAGE_SIGNATURES:
        if head.startswith(signature):
            return mime
    return "image/png"


class VisionProvider(ABC):
    """
    Abstract base class for vision model providers.

    All providers (OpenAI, Anthropic, Local) inherit the evaluation
    runner from this class and implement:
    - name: Property returning provider name
    - _send(): One API call returning the model's reply text

    Example:
        provider = OpenAIProvider(ProviderConfig(api_key="sk-..."))
        result = await provider.evaluate(screenshot_path, "A blue submit button")
    """

    #: Environment variable consulted when no key is configured
    env_var: Optional[str] = None

    #: Model used when ProviderConfig.model_name is unset
    default_model: Optional[str] = None

    requires_api_key: bool = True

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = self._resolve_config(config or ProviderConfig())
        self.defaults = EvaluationOptions(
            confidence_threshold=self.config.default_confidence_threshold,
            max_retries=self.config.default_max_retries,
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Provider name for logging and identification.

        Returns:
            Provider name (e.g., "openai", "anthropic", "local")
        """
        pass

    @property
    def model(self) -> Optional[str]:
        return self.config.model_name

    def is_available(self) -> bool:
        """
        Check if provider is configured and ready to use.

        Returns:
            True if an API key is set (or none is needed), False otherwise
        """
        return not self.requires_api_key or self.config.has_api_key()

    def _resolve_config(self, config: ProviderConfig) -> ProviderConfig:
        """
        Fill in the API key and model name once, at construction.

        A missing key only warns here; calls fail later with
        ConfigurationError.
        """
        updates = {}

        if not config.has_api_key():
            env_var = config.api_key_env_var or self.env_var
            if env_var and os.getenv(env_var):
                updates["api_key"] = os.getenv(env_var)
            if env_var and not config.api_key_env_var:
                updates["api_key_env_var"] = env_var

        if not config.model_name and self.default_model:
            updates["model_name"] = self.default_model

        resolved = config.model_copy(update=updates)

        if self.requires_api_key and not resolved.has_api_key():
            logger.warning(
                "[%s] No API key provided. Set config.api_key or the %s environment variable.",
                self.name, resolved.api_key_env_var or "API key",
            )

        return resolved

    def resolve_options(self, options: OptionsLike = None) -> EvaluationOptions:
        """
        Merge per-call options over provider defaults and hard defaults.

        Args:
            options: Call-site options (EvaluationOptions, dict or None)

        Returns:
            Fully populated EvaluationOptions
        """
        return merge_options(options, self.defaults, HARD_DEFAULTS)

    async def evaluate(
        self,
        image: ImageInput,
        specification: str,
        options: OptionsLike = None
    ) -> EvaluationResult:
        """
        Evaluate a screenshot against a specification, with retries.

        Attempts 1..max_retries; after a failed attempt waits
        1s, 2s, 4s, ... before the next one. The last error propagates
        unchanged. Results, including downgraded malformed replies, are
        never retried.

        Args:
            image: Screenshot path or raw PNG bytes
            specification: Natural-language specification
            options: Per-call options

        Returns:
            EvaluationResult from the first successful attempt

        Raises:
            ArtifactError: Screenshot missing (raised before any API call)
            ConfigurationError: No API key available
            TransportError: API unreachable or non-2xx after all retries
        """
        request = EvaluationRequest(
            image=Path(image) if isinstance(image, str) else image,
            specification=specification,
            options=self.resolve_options(options),
        )

        if self.config.check_artifact and isinstance(request.image, Path) and not request.image.exists():
            raise ArtifactError(f"Screenshot does not exist at path: {request.image}")

        max_retries = request.options.max_retries

        for attempt in range(1, max_retries + 1):
            if attempt > 1:
                logger.info("[%s] Retry attempt %d/%d", self.name, attempt, max_retries)

            try:
                return await self._evaluate_once(request)
            except (ArtifactError, ConfigurationError):
                raise
            except Exception as e:
                logger.error("[%s] Error (attempt %d/%d): %s", self.name, attempt, max_retries, e)

                if attempt >= max_retries:
                    raise

                await asyncio.sleep(RETRY_BASE_DELAY * 2 ** (attempt - 1))

        # unreachable: the loop either returns or raises
        raise RuntimeError(f"No evaluation attempts made with {self.name}")

    async def _evaluate_once(self, request: EvaluationRequest) -> EvaluationResult:
        """Single attempt: encode, call the API once, parse the reply"""
        api_key = self._require_api_key()
        image_data = self._encode_image(request.image)
        prompt = self._build_system_prompt(request.specification)

        response_text = await self._send(api_key, prompt, image_data, request.options)

        return parse_response(response_text, include_raw=bool(request.options.include_raw_response))

    @abstractmethod
    async def _send(
        self,
        api_key: Optional[str],
        system_prompt: str,
        image_data: str,
        options: EvaluationOptions
    ) -> str:
        """
        Make exactly one API call and return the reply text.

        Args:
            api_key: Resolved API key (None for keyless providers)
            system_prompt: Prompt embedding the specification
            image_data: Base64-encoded image (see ``media_type``)
            options: Merged options; model_parameters go into the request

        Returns:
            The model's textual reply

        Raises:
            TransportError: Non-2xx response or connection failure
        """
        pass

    def _require_api_key(self) -> Optional[str]:
        if not self.requires_api_key:
            return None
        if not self.config.has_api_key():
            raise ConfigurationError(
                f"No {self.name} API key provided. "
                f"Set {self.config.api_key_env_var or 'an API key'} in your environment or .env file"
            )
        return self.config.api_key

    def _request_parameters(self, options: EvaluationOptions) -> dict:
        """Default sampling parameters overlaid with model_parameters"""
        return {
            "temperature": self.config.temperature,
            "max_tokens": DEFAULT_MAX_TOKENS,
            **(options.model_parameters or {}),
        }

    def _encode_image(self, image: Union[Path, bytes]) -> str:
        """
        Encode image as base64 string.

        Args:
            image: Path to image file or raw bytes

        Returns:
            Base64-encoded image data

        Raises:
            ArtifactError: If the file cannot be read or is empty
        """
        if isinstance(image, bytes):
            data = image
        else:
            try:
                with open(image, "rb") as f:
                    data = f.read()
            except OSError as e:
                raise ArtifactError(f"Failed to read image file {image}: {e}") from e

        if not data:
            raise ArtifactError(f"Could not read screenshot file: {image if isinstance(image, Path) else '<bytes>'}")

        return base64.b64encode(data).decode("utf-8")

    def _build_system_prompt(self, specification: str) -> str:
        """
        Build the evaluation prompt with the specification embedded verbatim.

        Can be overridden by subclasses for provider-specific phrasing.
        """
        return f"""You are a visual UI testing assistant. Analyze the image and determine if it meets the specification.
Use a scale from 0.0 to 1.0 where:
- 1.0 means the UI perfectly matches the specification
- 0.0 means the UI completely fails to match the specification

Evaluate only what is visible in the screenshot: visual appearance, layout,
text content and visible interactive elements.

Format your answer as JSON with these fields:
- verdict: string, "yes" if the UI matches the specification, "no" if it doesn't
- confidence: number from 0.0 to 1.0
- reasoning: your step-by-step explanation
- failReason: string, why it fails (omit if verdict is "yes")
- suggestions: list of strings with improvements (omit if none)

SPECIFICATION:
{specification}

Analyze carefully and be honest about the confidence score."""
