"""Run command: start the controller."""

from __future__ import annotations

from pathlib import Path

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console

from completion_operator.cli import factory
from completion_operator.controller.operator import CompletionOperator
from completion_operator.core.config.models import ControllerConfig
from completion_operator.integrations.kubernetes.exceptions import KubernetesError

console = Console()
logger = structlog.get_logger()


def run(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the operator config file.",
    ),
    debounce: float | None = typer.Option(
        None,
        "--debounce",
        help="Debounce window in seconds.",
    ),
    per_resource: bool = typer.Option(
        False,
        "--per-resource",
        help="Debounce each resource separately instead of process-wide.",
    ),
) -> None:
    """Watch Completion resources and reconcile them until interrupted."""
    config = factory.load_config_or_exit(config_path, console)

    overrides: dict[str, object] = {}
    if debounce is not None:
        overrides["debounce_seconds"] = debounce
    if per_resource:
        overrides["per_resource_debounce"] = True
    try:
        controller = ControllerConfig.model_validate(
            {**config.controller.model_dump(), **overrides}
        )
    except ValidationError as e:
        console.print(f"[red]Invalid option:[/red] {e}")
        raise typer.Exit(code=1) from e

    manager = factory.create_manager_or_exit(config, console)

    with factory.create_completion_client(config) as completions:
        operator = CompletionOperator(manager, completions, controller)
        try:
            operator.run(install_signal_handlers=True)
        except KubernetesError as e:
            logger.error("operator_failed", error=str(e))
            console.print(f"[red]Watch failed:[/red] {e}")
            raise typer.Exit(code=1) from e
