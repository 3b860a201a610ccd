"""Completion provider exceptions."""

from __future__ import annotations


class CompletionError(Exception):
    """Base exception for completion provider errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message.
            details: Additional details.
        """
        super().__init__(message)
        self.message = message
        self.details = details


class CompletionConnectionError(CompletionError):
    """Raised when the provider cannot be reached or times out."""


class CompletionAuthError(CompletionError):
    """Raised when the provider rejects the API key."""


class CompletionAPIError(CompletionError):
    """Raised when the provider answers with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message.
            status_code: HTTP status code.
            details: Additional details.
        """
        super().__init__(message, details)
        self.status_code = status_code


class CompletionResponseError(CompletionError):
    """Raised when a successful response carries no usable choices."""


class CompletionConfigError(CompletionError):
    """Raised when the provider configuration is missing or invalid."""
