"""Kubernetes integration - API client and configuration models."""

from completion_operator.integrations.kubernetes.client import KubernetesClient
from completion_operator.integrations.kubernetes.config import KubernetesConfig
from completion_operator.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesGoneError,
    KubernetesNotFoundError,
    KubernetesValidationError,
)

__all__ = [
    "KubernetesAuthError",
    "KubernetesClient",
    "KubernetesConfig",
    "KubernetesConflictError",
    "KubernetesConnectionError",
    "KubernetesError",
    "KubernetesGoneError",
    "KubernetesNotFoundError",
    "KubernetesValidationError",
]
