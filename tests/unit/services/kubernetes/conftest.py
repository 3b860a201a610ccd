"""Shared fixtures for Kubernetes service tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from completion_operator.integrations.kubernetes.client import KubernetesClient


@pytest.fixture
def mock_k8s_client() -> MagicMock:
    """Create a mock Kubernetes client.

    Error translation and the retry decorator behave like the real client;
    ``custom_objects`` is a plain MagicMock.
    """
    mock_client = MagicMock()
    mock_client.translate_api_exception.side_effect = KubernetesClient.translate_api_exception
    mock_client.make_retry_decorator.return_value = lambda func: func
    mock_client.timeout = 30
    return mock_client
