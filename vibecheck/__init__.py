"""
Vibe Check - LLM-judged UI assertions

Assert that a rendered UI element matches a natural-language
specification by asking a vision-capable language model.

Supports multiple vision providers:
- OpenAI (and OpenAI-compatible servers)
- Anthropic Claude
- Local LLMs (Ollama/LLaVA)
"""

__version__ = "0.1.0"

from .check import VibeChecker, decide, is_pass, vibe_check
from .config import load_config
from .exceptions import (
    ArtifactError,
    ConfigurationError,
    MalformedResponseError,
    ProviderNotFoundError,
    TransportError,
    VibeCheckError,
    VibeCheckFailed,
)
from .models import EvaluationOptions, EvaluationRequest, EvaluationResult, ProviderConfig, ProviderSpec, VibeConfig
from .registry import ProviderRegistry, build_registry

__all__ = [
    "ArtifactError",
    "ConfigurationError",
    "EvaluationOptions",
    "EvaluationRequest",
    "EvaluationResult",
    "MalformedResponseError",
    "ProviderConfig",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "ProviderSpec",
    "TransportError",
    "VibeCheckError",
    "VibeCheckFailed",
    "VibeChecker",
    "VibeConfig",
    "build_registry",
    "decide",
    "is_pass",
    "load_config",
    "vibe_check",
]
