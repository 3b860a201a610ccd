"""Builders shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer

from completion_operator.core.config.models import ConfigError, OperatorConfig, load_config
from completion_operator.integrations.completion.client import CompletionClient
from completion_operator.integrations.completion.exceptions import CompletionConfigError
from completion_operator.integrations.kubernetes.client import KubernetesClient
from completion_operator.integrations.kubernetes.exceptions import KubernetesError
from completion_operator.services.kubernetes.completion_manager import (
    CompletionResourceManager,
)

if TYPE_CHECKING:
    from rich.console import Console


def create_manager(config: OperatorConfig) -> CompletionResourceManager:
    """Connect to the cluster and return a manager for the watched resource."""
    client = KubernetesClient(config.kubernetes)
    return CompletionResourceManager(
        client,
        group=config.controller.group,
        version=config.controller.version,
        plural=config.controller.plural,
        status_subresource=config.controller.status_subresource,
    )


def create_completion_client(config: OperatorConfig) -> CompletionClient:
    """Build the completion provider client."""
    return CompletionClient(config.completion)


def load_config_or_exit(config_path: Path | None, console: Console) -> OperatorConfig:
    """Load configuration, printing the error and exiting with code 1 on failure."""
    try:
        return load_config(config_path)
    except (ConfigError, CompletionConfigError) as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        if e.details:
            console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(code=1) from e


def create_manager_or_exit(config: OperatorConfig, console: Console) -> CompletionResourceManager:
    """Connect to the cluster, printing the error and exiting with code 1 on failure."""
    try:
        return create_manager(config)
    except KubernetesError as e:
        console.print(f"[red]Kubernetes error:[/red] {e}")
        raise typer.Exit(code=1) from e
