"""
Taskpilot Provider Layer.

Model client contract, streamed fragment types, failure classification
and the LiteLLM streaming client.
"""

from taskpilot.providers.client import ModelClient
from taskpilot.providers.exceptions import (
    AuthenticationError,
    ContextLengthExceededError,
    FailureType,
    InvalidRequestError,
    NetworkError,
    ProviderError,
    RateLimitError,
    ServerError,
    classify_error,
    should_retry,
)
from taskpilot.providers.litellm_client import (
    LiteLLMModelClient,
    to_litellm_messages,
    to_openai_tools,
)
from taskpilot.providers.models import FragmentType, StreamFragment

__all__ = [
    # Client
    "ModelClient",
    "LiteLLMModelClient",
    "to_litellm_messages",
    "to_openai_tools",
    # Models
    "FragmentType",
    "StreamFragment",
    # Exceptions
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ContextLengthExceededError",
    "NetworkError",
    "ServerError",
    "InvalidRequestError",
    "FailureType",
    "classify_error",
    "should_retry",
]
