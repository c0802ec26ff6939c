"""
Data Models for Vibe Checks

Type-safe Pydantic models for evaluation requests, options, results
and provider configuration. Shared by every provider and by the
orchestration layer.
"""

from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


ProviderType = Literal["openai", "anthropic", "local"]

DEFAULT_CONFIDENCE_THRESHOLD = 0.8
DEFAULT_MAX_RETRIES = 3
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 1500


class EvaluationOptions(BaseModel):
    """
    Per-evaluation options.

    Every field is optional: ``None`` means "not set at this layer".
    Layers are combined with ``merge_options``.

    Attributes:
        confidence_threshold: Minimum confidence for a "yes" verdict to pass
        include_raw_response: Attach the raw model reply to the result
        max_retries: Total number of attempts (1 means no retry)
        model_parameters: Passed verbatim to the backend request body
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    confidence_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    include_raw_response: Optional[bool] = None
    max_retries: Optional[int] = Field(default=None, ge=1)
    model_parameters: Optional[dict[str, Any]] = None


HARD_DEFAULTS = EvaluationOptions(
    confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD,
    include_raw_response=False,
    max_retries=DEFAULT_MAX_RETRIES,
    model_parameters={},
)

OptionsLike = Union[EvaluationOptions, dict, None]


def merge_options(*layers: OptionsLike) -> EvaluationOptions:
    """
    Merge option layers, highest precedence first.

    For scalar fields the first non-None value wins. ``model_parameters``
    are merged key by key so that a call-site parameter overrides the
    same key from a lower layer without discarding the others.

    Args:
        *layers: EvaluationOptions, plain dicts or None, in precedence order

    Returns:
        A new EvaluationOptions; no layer is modified

    Example:
        merged = merge_options(call_site, run_config.evaluation, HARD_DEFAULTS)
    """
    resolved = [
        layer if isinstance(layer, EvaluationOptions) else EvaluationOptions.model_validate(layer)
        for layer in layers
        if layer is not None
    ]

    values: dict[str, Any] = {}
    for name in ("confidence_threshold", "include_raw_response", "max_retries"):
        values[name] = next(
            (getattr(layer, name) for layer in resolved if getattr(layer, name) is not None),
            None,
        )

    parameter_layers = [layer.model_parameters for layer in resolved if layer.model_parameters is not None]
    if parameter_layers:
        parameters: dict[str, Any] = {}
        for layer_parameters in reversed(parameter_layers):
            parameters.update(layer_parameters)
        values["model_parameters"] = parameters

    return EvaluationOptions(**values)


class EvaluationRequest(BaseModel):
    """
    A single image + specification pair to evaluate.

    Attributes:
        image: Path to the screenshot or the raw image bytes
        specification: Natural-language description the image must match
        options: Fully merged options for this evaluation
    """

    model_config = ConfigDict(frozen=True)

    image: Union[Path, bytes]
    specification: str = Field(min_length=1)
    options: EvaluationOptions = Field(default_factory=lambda: HARD_DEFAULTS)

    @field_validator("specification")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("specification must not be blank")
        return v


class EvaluationResult(BaseModel):
    """
    Normalized verdict returned by every provider.

    Attributes:
        verdict: "yes" if the image matches the specification
        confidence: Model-reported certainty, nominally 0-1 (not clamped)
        reasoning: The model's explanation
        fail_reason: Why it fails, when the verdict is "no"
        suggestions: Optional improvement suggestions, in model order
        raw_response: Raw reply text, only when requested
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    verdict: Literal["yes", "no"] = "no"
    confidence: float
    reasoning: str = "No reasoning provided"
    fail_reason: Optional[str] = Field(default=None, alias="failReason")
    suggestions: Optional[list[str]] = None
    raw_response: Optional[Any] = Field(default=None, alias="rawResponse")

    @field_validator("verdict", mode="before")
    @classmethod
    def normalize_verdict(cls, v: Any) -> str:
        """Anything other than an explicit yes is a no"""
        if isinstance(v, str) and v.strip().lower() == "yes":
            return "yes"
        return "no"

    @field_validator("reasoning", mode="before")
    @classmethod
    def default_reasoning(cls, v: Any) -> Any:
        if v is None or v == "":
            return "No reasoning provided"
        return v

    @field_validator("suggestions", mode="before")
    @classmethod
    def coerce_suggestions(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @property
    def in_range(self) -> bool:
        return 0.0 <= self.confidence <= 1.0


class ProviderConfig(BaseModel):
    """
    Configuration owned by a provider instance.

    Attributes:
        api_key: Explicit API key; wins over any environment variable
        api_key_env_var: Environment variable to read when api_key is absent
        default_confidence_threshold: Provider-level threshold default
        default_max_retries: Provider-level attempt count default
        temperature: Sampling temperature sent with every request
        model_name: Backend model identifier (provider default if None)
        base_url: Alternate API endpoint (OpenAI-compatible servers, Ollama host)
        timeout: Transport timeout in seconds; None leaves the client default
        check_artifact: Verify the screenshot exists before evaluating
    """

    api_key: Optional[str] = None
    api_key_env_var: Optional[str] = None
    default_confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, ge=0, le=1)
    default_max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0)
    model_name: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0)
    check_artifact: bool = True

    def has_api_key(self) -> bool:
        """Check if an API key is configured"""
        return self.api_key is not None and len(self.api_key) > 0


class ProviderSpec(BaseModel):
    """A provider type tag plus the configuration to build it with"""

    type: ProviderType
    config: ProviderConfig = Field(default_factory=ProviderConfig)


class VibeConfig(BaseModel):
    """
    Run configuration for vibe checks.

    Loaded from .env, environment variables and run-config overrides.

    Attributes:
        default_provider: Registry name used when a check names none
        providers: Registry name -> provider spec
        evaluation: Global evaluation defaults (unset fields fall through)
        screenshots_dir: Where captured screenshots are written
    """

    default_provider: str = "openai"
    providers: dict[str, ProviderSpec] = Field(default_factory=lambda: {
        "openai": ProviderSpec(type="openai"),
        "anthropic": ProviderSpec(type="anthropic"),
    })
    evaluation: EvaluationOptions = Field(default_factory=EvaluationOptions)
    screenshots_dir: Path = Path("screenshots")
