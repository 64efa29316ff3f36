"""Error taxonomy and classification.

Every failure that crosses a gateway boundary is normalized into one of a
closed set of kinds so the CLI and the pipeline can present them uniformly:

- INVALID_CONFIGURATION: missing or placeholder credential
- RATE_LIMIT_EXCEEDED: local request budget exhausted (carries retry-after)
- NETWORK_ERROR: transport failure
- UPSTREAM_API_ERROR: non-success or malformed upstream reply
- VALIDATION_ERROR: malformed user input or output-shape mismatch
- SOURCE_PROVIDER_ERROR: not-found / access-denied from the source host
- REQUEST_TIMEOUT: call exceeded its wall-clock budget
"""

import asyncio
import json
from enum import Enum
from typing import Any

import httpx
import litellm
import pydantic


class ErrorKind(Enum):
    """Closed set of error classifications."""

    INVALID_CONFIGURATION = "invalid_configuration"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    NETWORK_ERROR = "network_error"
    UPSTREAM_API_ERROR = "upstream_api_error"
    VALIDATION_ERROR = "validation_error"
    SOURCE_PROVIDER_ERROR = "source_provider_error"
    REQUEST_TIMEOUT = "request_timeout"


class GitMindError(Exception):
    """Base class for all classified errors.

    Attributes:
        kind: Error classification
        status_code: HTTP-like status code
        message: Human-readable message
        details: Original error text or payload, for logs only
    """

    kind: ErrorKind = ErrorKind.UPSTREAM_API_ERROR
    default_status: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "kind": self.kind.value,
            "status_code": self.status_code,
            "message": self.message,
        }


class InvalidConfigurationError(GitMindError):
    """A required credential is missing or still a placeholder."""

    kind = ErrorKind.INVALID_CONFIGURATION
    default_status = 401


class RateLimitExceededError(GitMindError):
    """The local request budget (or daily usage cap) denied the call."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    default_status = 429

    def __init__(
        self,
        message: str,
        retry_after_ms: int | None = None,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, status_code=status_code, details=details)
        self.retry_after_ms = retry_after_ms

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_ms"] = self.retry_after_ms
        return data


class NetworkError(GitMindError):
    """Transport-level failure (DNS, connection reset, TLS...)."""

    kind = ErrorKind.NETWORK_ERROR
    default_status = 503


class UpstreamApiError(GitMindError):
    """Upstream service returned a non-success or unusable reply."""

    kind = ErrorKind.UPSTREAM_API_ERROR
    default_status = 500


class ValidationError(GitMindError):
    """User input or a structured reply failed validation."""

    kind = ErrorKind.VALIDATION_ERROR
    default_status = 400


class SourceProviderError(GitMindError):
    """Source host refused the request (not found, access denied, quota)."""

    kind = ErrorKind.SOURCE_PROVIDER_ERROR
    default_status = 404


class RequestTimeoutError(GitMindError):
    """Call did not finish within its wall-clock budget."""

    kind = ErrorKind.REQUEST_TIMEOUT
    default_status = 504


# Substrings that mark an otherwise-untyped error as a transport failure
_NETWORK_MARKERS = ("fetch", "network", "connection", "connect")


def classify_error(error: BaseException) -> GitMindError:
    """Normalize any raised value into a GitMindError.

    Already-classified errors pass through unchanged. Known library
    exceptions are mapped by type; remaining errors are tagged as network
    failures if their message looks transport-related and as upstream
    API errors otherwise.

    Args:
        error: The exception to classify

    Returns:
        A GitMindError subclass instance
    """
    if isinstance(error, GitMindError):
        return error

    text = str(error) or error.__class__.__name__

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException, litellm.Timeout)):
        return RequestTimeoutError(
            "The request timed out before the service responded.",
            details=text,
        )

    if isinstance(error, litellm.AuthenticationError):
        return InvalidConfigurationError(
            "The inference service rejected the configured API key.",
            details=text,
        )

    if isinstance(error, (httpx.TransportError, litellm.APIConnectionError)):
        return NetworkError(
            "Network error. Please check your connection.",
            details=text,
        )

    if isinstance(error, (pydantic.ValidationError, json.JSONDecodeError)):
        return ValidationError(
            f"Reply did not match the expected shape: {text}",
            details=text,
        )

    lowered = text.lower()
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return NetworkError(
            "Network error. Please check your connection.",
            details=text,
        )

    status = getattr(error, "status_code", None)
    return UpstreamApiError(
        text or "An unexpected error occurred",
        status_code=status if isinstance(status, int) else None,
        details=text,
    )


def error_message(error: BaseException | str | None) -> str:
    """Return a display message for any error-like value."""
    if error is None:
        return "An unexpected error occurred"
    if isinstance(error, str):
        return error
    if isinstance(error, GitMindError):
        return error.message
    return str(error) or "An unexpected error occurred"
