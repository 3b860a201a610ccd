"""Completion provider configuration."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from completion_operator.integrations.completion.exceptions import CompletionConfigError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_ENGINE = "davinci-codex"


class CompletionConfig(BaseModel):
    """Completion provider configuration.

    The API key is read once at startup and kept as a SecretStr so it never
    ends up in logs or reprs.
    """

    model_config = ConfigDict(extra="forbid")

    api_key: SecretStr = Field(..., description="Bearer token for the completion API")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="API base URL")
    engine: str = Field(default=DEFAULT_ENGINE, description="Completion engine name")
    organization: str | None = Field(default=None, description="Optional billing organization")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    retry_attempts: int = Field(default=3, description="Attempts for transient failures")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        """Validate retry_attempts is at least one."""
        if v < 1:
            raise ValueError("retry_attempts must be at least 1")
        return v

    @property
    def completions_path(self) -> str:
        """Path of the completions endpoint relative to base_url."""
        return f"/engines/{self.engine}/completions"

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> CompletionConfig:
        """Create configuration with environment variable overrides.

        Supported environment variables:
            OPENAI_API_KEY: API key (required unless present in base_config)
            COMPLETION_OPERATOR_OPENAI_URL: API base URL
            COMPLETION_OPERATOR_ENGINE: completion engine
            COMPLETION_OPERATOR_OPENAI_ORG: billing organization

        Raises:
            CompletionConfigError: If no API key is available or a value is invalid.
        """
        config_dict = base_config.copy() if base_config else {}

        if api_key := os.environ.get("OPENAI_API_KEY"):
            config_dict["api_key"] = api_key

        if base_url := os.environ.get("COMPLETION_OPERATOR_OPENAI_URL"):
            config_dict["base_url"] = base_url

        if engine := os.environ.get("COMPLETION_OPERATOR_ENGINE"):
            config_dict["engine"] = engine

        if organization := os.environ.get("COMPLETION_OPERATOR_OPENAI_ORG"):
            config_dict["organization"] = organization

        if not config_dict.get("api_key"):
            raise CompletionConfigError(
                "Completion API key not configured",
                details="Set OPENAI_API_KEY or completion.api_key in the config file",
            )

        try:
            return cls.model_validate(config_dict)
        except ValidationError as e:
            raise CompletionConfigError("Invalid completion configuration", details=str(e)) from e
