"""Reconcile command: run one reconcile pass for a single resource."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from completion_operator.cli import factory
from completion_operator.controller.operator import CompletionOperator
from completion_operator.controller.reconciler import ReconcileState
from completion_operator.integrations.kubernetes.exceptions import KubernetesError

console = Console()

STATE_STYLES = {
    ReconcileState.CONVERGED: "green",
    ReconcileState.INVALID: "yellow",
    ReconcileState.STALE: "yellow",
    ReconcileState.FAILED: "red",
}


def reconcile(
    name: str = typer.Argument(..., help="Name of the Completion resource."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the operator config file.",
    ),
) -> None:
    """Reconcile one Completion now, without waiting for a watch event."""
    config = factory.load_config_or_exit(config_path, console)
    manager = factory.create_manager_or_exit(config, console)

    try:
        resource = manager.get_completion(name)
    except KubernetesError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    with factory.create_completion_client(config) as completions:
        operator = CompletionOperator(manager, completions, config.controller)
        result = operator.reconcile_now(resource)

    style = STATE_STYLES.get(result.state, "white")
    console.print(f"{name}: [{style}]{result.state.value}[/{style}]")
    if result.error is not None:
        console.print(f"[dim]{result.error}[/dim]")
        raise typer.Exit(code=1)
