"""Kubernetes integration configuration models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class KubernetesConfig(BaseModel):
    """Connection settings for the Kubernetes API server."""

    model_config = ConfigDict(extra="forbid")

    context: str | None = None
    kubeconfig: str | None = None
    timeout: int = 300
    retry_attempts: int = 3

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
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

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> KubernetesConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values.

        Supported environment variables:
            COMPLETION_OPERATOR_K8S_CONTEXT: kubeconfig context to use
            COMPLETION_OPERATOR_KUBECONFIG: path to the kubeconfig file
            COMPLETION_OPERATOR_K8S_TIMEOUT: request timeout in seconds
        """
        config_dict = base_config.copy() if base_config else {}

        if context := os.environ.get("COMPLETION_OPERATOR_K8S_CONTEXT"):
            config_dict["context"] = context

        if kubeconfig := os.environ.get("COMPLETION_OPERATOR_KUBECONFIG"):
            config_dict["kubeconfig"] = kubeconfig

        if timeout := os.environ.get("COMPLETION_OPERATOR_K8S_TIMEOUT"):
            config_dict["timeout"] = int(timeout)

        return cls.model_validate(config_dict)
