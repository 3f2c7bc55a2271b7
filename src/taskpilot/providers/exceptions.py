"""
Provider exceptions for Taskpilot.

Defines model-client errors and the failure classification used by the
task retry logic.
"""

from enum import Enum

from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError as LiteLLMAuthError,
    BadRequestError,
    ContextWindowExceededError,
    RateLimitError as LiteLLMRateLimitError,
    ServiceUnavailableError,
    Timeout as LiteLLMTimeout,
)


class FailureType(Enum):
    """Classification of model request failures."""

    RATE_LIMIT = "rate_limit"
    AUTH_ERROR = "auth_error"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    CONTEXT_LENGTH = "context_length"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class AuthenticationError(ProviderError):
    """API key invalid or missing."""

    pass


class RateLimitError(ProviderError):
    """Provider rate limit exceeded."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, provider)
        self.retry_after = retry_after


class ContextLengthExceededError(ProviderError):
    """Request exceeded the model's context length."""

    pass


class NetworkError(ProviderError):
    """Network-related error (connection, timeout, dropped stream)."""

    pass


class ServerError(ProviderError):
    """Provider server error (5xx status codes)."""

    pass


class InvalidRequestError(ProviderError):
    """Invalid request sent to provider."""

    pass


def classify_error(error: Exception) -> FailureType:
    """
    Classify an exception into a failure type for retry decisions.

    Args:
        error: The exception to classify.

    Returns:
        The failure type classification.
    """
    if isinstance(error, LiteLLMRateLimitError):
        return FailureType.RATE_LIMIT
    elif isinstance(error, LiteLLMAuthError):
        return FailureType.AUTH_ERROR
    elif isinstance(error, ContextWindowExceededError):
        return FailureType.CONTEXT_LENGTH
    elif isinstance(error, (APIConnectionError, ServiceUnavailableError, LiteLLMTimeout)):
        return FailureType.NETWORK_ERROR
    elif isinstance(error, BadRequestError):
        return FailureType.INVALID_REQUEST
    elif isinstance(error, APIError):
        status = getattr(error, "status_code", None)
        if status and 500 <= status < 600:
            return FailureType.SERVER_ERROR
        elif status and 400 <= status < 500:
            return FailureType.INVALID_REQUEST
        return FailureType.UNKNOWN

    # Check our own exceptions
    if isinstance(error, RateLimitError):
        return FailureType.RATE_LIMIT
    elif isinstance(error, AuthenticationError):
        return FailureType.AUTH_ERROR
    elif isinstance(error, ContextLengthExceededError):
        return FailureType.CONTEXT_LENGTH
    elif isinstance(error, (NetworkError, ConnectionError, TimeoutError)):
        return FailureType.NETWORK_ERROR
    elif isinstance(error, ServerError):
        return FailureType.SERVER_ERROR
    elif isinstance(error, InvalidRequestError):
        return FailureType.INVALID_REQUEST

    return FailureType.UNKNOWN


def should_retry(failure_type: FailureType) -> bool:
    """
    Determine if a failure type should be retried automatically.

    Args:
        failure_type: The classified failure type.

    Returns:
        True if an automatic retry with backoff makes sense.
    """
    # Auth errors need a config fix, invalid requests will fail again
    non_retriable = {
        FailureType.AUTH_ERROR,
        FailureType.INVALID_REQUEST,
    }
    return failure_type not in non_retriable
