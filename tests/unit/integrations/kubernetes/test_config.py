"""Unit tests for Kubernetes configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from completion_operator.integrations.kubernetes.config import KubernetesConfig


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKubernetesConfig:
    """Tests for KubernetesConfig."""

    def test_defaults(self) -> None:
        """Defaults use the current kubeconfig context."""
        config = KubernetesConfig()

        assert config.context is None
        assert config.kubeconfig is None
        assert config.timeout == 300
        assert config.retry_attempts == 3

    def test_kubeconfig_expands_home(self) -> None:
        """A leading ~ is expanded."""
        config = KubernetesConfig(kubeconfig="~/.kube/config")

        assert config.kubeconfig == str(Path.home() / ".kube" / "config")

    @pytest.mark.parametrize("field", ["timeout", "retry_attempts"])
    def test_rejects_non_positive(self, field: str) -> None:
        """Timeout and retry attempts must be positive."""
        with pytest.raises(ValidationError):
            KubernetesConfig.model_validate({field: 0})

    def test_rejects_unknown_keys(self) -> None:
        """Typos in the config file are reported."""
        with pytest.raises(ValidationError):
            KubernetesConfig.model_validate({"namespace": "default"})


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKubernetesConfigFromEnv:
    """Tests for KubernetesConfig.from_env."""

    def test_without_env_uses_base(self) -> None:
        """Base values pass through when nothing is set."""
        config = KubernetesConfig.from_env({"context": "kind-dev"})

        assert config.context == "kind-dev"

    def test_env_overrides_base(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables win over file values."""
        monkeypatch.setenv("COMPLETION_OPERATOR_K8S_CONTEXT", "prod")
        monkeypatch.setenv("COMPLETION_OPERATOR_KUBECONFIG", "/etc/kube/config")
        monkeypatch.setenv("COMPLETION_OPERATOR_K8S_TIMEOUT", "60")

        config = KubernetesConfig.from_env({"context": "kind-dev", "timeout": 10})

        assert config.context == "prod"
        assert config.kubeconfig == "/etc/kube/config"
        assert config.timeout == 60

    def test_does_not_mutate_base(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The caller's mapping is copied."""
        monkeypatch.setenv("COMPLETION_OPERATOR_K8S_CONTEXT", "prod")
        base = {"context": "kind-dev"}

        KubernetesConfig.from_env(base)

        assert base == {"context": "kind-dev"}
