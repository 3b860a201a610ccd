"""Completion operator - reconciles Completion custom resources against a text-completion API."""

from completion_operator.__version__ import __version__

__all__ = ["__version__"]
