"""Kubernetes service managers."""

from completion_operator.services.kubernetes.base import K8sBaseManager
from completion_operator.services.kubernetes.completion_manager import (
    CompletionResourceManager,
)

__all__ = [
    "CompletionResourceManager",
    "K8sBaseManager",
]
