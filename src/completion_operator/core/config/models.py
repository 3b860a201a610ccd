"""Operator configuration models and loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from completion_operator.integrations.completion.config import CompletionConfig
from completion_operator.integrations.kubernetes.config import KubernetesConfig
from completion_operator.models.completion import (
    COMPLETION_GROUP,
    COMPLETION_PLURAL,
    COMPLETION_VERSION,
)

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "completion-operator" / "config.yaml"


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ControllerConfig(BaseModel):
    """Watch, debounce and requeue settings."""

    model_config = ConfigDict(extra="forbid")

    group: str = COMPLETION_GROUP
    version: str = COMPLETION_VERSION
    plural: str = COMPLETION_PLURAL
    debounce_seconds: float = Field(default=1.0, ge=0)
    per_resource_debounce: bool = False
    max_requeues: int = Field(default=5, ge=0)
    requeue_base_delay: float = Field(default=1.0, gt=0)
    requeue_max_delay: float = Field(default=60.0, gt=0)
    watch_max_retries: int = Field(default=10, ge=1)
    watch_backoff_max: float = Field(default=30.0, gt=0)
    watch_timeout_seconds: int | None = 300
    status_subresource: bool = False
    error_dir: str = "."

    @field_validator("watch_timeout_seconds")
    @classmethod
    def validate_watch_timeout(cls, v: int | None) -> int | None:
        """Validate the watch timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("watch_timeout_seconds must be positive")
        return v

    @field_validator("error_dir")
    @classmethod
    def validate_error_dir(cls, v: str) -> str:
        """Expand ~ in the error directory."""
        return str(Path(v).expanduser())

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> ControllerConfig:
        """Create configuration with environment variable overrides.

        Supported environment variables:
            COMPLETION_OPERATOR_DEBOUNCE: debounce window in seconds
            COMPLETION_OPERATOR_PER_RESOURCE: "true" to debounce per resource
            COMPLETION_OPERATOR_ERROR_DIR: directory for error dumps
        """
        config_dict = base_config.copy() if base_config else {}

        if debounce := os.environ.get("COMPLETION_OPERATOR_DEBOUNCE"):
            config_dict["debounce_seconds"] = float(debounce)

        if per_resource := os.environ.get("COMPLETION_OPERATOR_PER_RESOURCE"):
            config_dict["per_resource_debounce"] = per_resource.lower() in ("1", "true", "yes")

        if error_dir := os.environ.get("COMPLETION_OPERATOR_ERROR_DIR"):
            config_dict["error_dir"] = error_dir

        return cls.model_validate(config_dict)


class OperatorConfig(BaseModel):
    """Complete operator configuration."""

    model_config = ConfigDict(extra="forbid")

    kubernetes: KubernetesConfig = KubernetesConfig()
    controller: ControllerConfig = ControllerConfig()
    completion: CompletionConfig


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file format: {path}", details=str(e)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {path}", details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def load_config(path: Path | str | None = None) -> OperatorConfig:
    """Load configuration from a YAML file and the environment.

    Environment variables override file values. An explicit ``path`` must
    exist; the default path is optional.

    Raises:
        ConfigError: If the file cannot be read or a section is invalid.
        CompletionConfigError: If no completion API key is configured.
    """
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        data = _read_config_file(config_path)
    elif DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
        data = _read_config_file(config_path)
    else:
        config_path = None
        data = {}

    unknown = set(data) - {"kubernetes", "controller", "completion"}
    if unknown:
        raise ConfigError(f"Unknown config sections: {', '.join(sorted(unknown))}")
    for section, value in data.items():
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Config section '{section}' must be a mapping",
                details=f"got {type(value).__name__}",
            )

    try:
        kubernetes = KubernetesConfig.from_env(data.get("kubernetes"))
        controller = ControllerConfig.from_env(data.get("controller"))
    except (ValidationError, ValueError) as e:
        raise ConfigError("Invalid configuration", details=str(e)) from e
    completion = CompletionConfig.from_env(data.get("completion"))

    logger.debug("config_loaded", path=str(config_path) if config_path else None)
    return OperatorConfig(kubernetes=kubernetes, controller=controller, completion=completion)
