"""Completion provider integration - HTTP client, configuration and models."""

from completion_operator.integrations.completion.client import CompletionClient
from completion_operator.integrations.completion.config import CompletionConfig
from completion_operator.integrations.completion.exceptions import (
    CompletionAPIError,
    CompletionAuthError,
    CompletionConfigError,
    CompletionConnectionError,
    CompletionError,
    CompletionResponseError,
)
from completion_operator.integrations.completion.models import (
    CompletionChoice,
    CompletionRequest,
    CompletionResult,
)

__all__ = [
    "CompletionAPIError",
    "CompletionAuthError",
    "CompletionChoice",
    "CompletionClient",
    "CompletionConfig",
    "CompletionConfigError",
    "CompletionConnectionError",
    "CompletionError",
    "CompletionRequest",
    "CompletionResponseError",
    "CompletionResult",
]
