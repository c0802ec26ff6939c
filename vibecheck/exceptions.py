from typing import Any, Optional


class VibeCheckError(Exception):
    """Base exception for vibe check errors"""

    error_type: str = "vibe_check_error"


class ConfigurationError(VibeCheckError):
    """Missing API keys, unknown provider types and similar setup problems"""

    error_type: str = "configuration_error"


class ProviderNotFoundError(ConfigurationError):
    """A provider name was referenced that is not registered"""

    error_type: str = "provider_not_found"


class ArtifactError(VibeCheckError):
    """Screenshot missing or unreadable (not retried)"""

    error_type: str = "artifact_error"


class TransportError(VibeCheckError):
    """Network failure or non-2xx response from a provider API (retryable)"""

    error_type: str = "transport_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(VibeCheckError):
    """Model reply could not be parsed; absorbed into a zero-confidence result"""

    error_type: str = "malformed_response"


class VibeCheckFailed(AssertionError):
    """
    The decision gate rejected an evaluation.

    Subclasses AssertionError so test runners report it as a failure
    rather than an error.
    """

    def __init__(self, message: str, result=None, threshold: Optional[float] = None,
                 specification: Optional[str] = None, artifact: Optional[str] = None):
        super().__init__(message)
        self.result = result
        self.threshold = threshold
        self.specification = specification
        self.artifact = artifact
