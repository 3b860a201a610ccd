"""Logging configuration for completion_operator."""

from completion_operator.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
