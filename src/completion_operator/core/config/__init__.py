"""Configuration management with Pydantic validation."""

from completion_operator.core.config.models import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    ControllerConfig,
    OperatorConfig,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "ControllerConfig",
    "OperatorConfig",
    "load_config",
]
