"""Status command: show convergence of every Completion."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from completion_operator.cli import factory
from completion_operator.integrations.kubernetes.exceptions import KubernetesError

console = Console()

PREVIEW_LENGTH = 40


def _preview(text: str) -> str:
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    if len(first_line) > PREVIEW_LENGTH:
        return first_line[: PREVIEW_LENGTH - 3] + "..."
    return first_line


def status(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the operator config file.",
    ),
) -> None:
    """List Completion resources with their observed generation."""
    config = factory.load_config_or_exit(config_path, console)
    manager = factory.create_manager_or_exit(config, console)
    context = manager.client.get_current_context()
    if not manager.client.check_connection():
        console.print(f"[red]Error:[/red] Kubernetes API unreachable (context: {context})")
        raise typer.Exit(code=1)

    try:
        resources = manager.list_completions()
    except KubernetesError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not resources:
        console.print(f"[yellow]No resources found at {manager.api_path}[/yellow]")
        return

    table = Table(title=f"Completions ({context})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Generation", justify="right")
    table.add_column("Observed", justify="right")
    table.add_column("Converged")
    table.add_column("Completion", style="dim")

    for resource in resources:
        observed = resource.status.observed_generation if resource.status else None
        completion = resource.status.completion if resource.status else ""
        table.add_row(
            resource.name,
            str(resource.generation),
            "-" if observed is None else str(observed),
            "[green]yes[/green]" if resource.is_converged else "[yellow]no[/yellow]",
            _preview(completion),
        )

    console.print(table)
