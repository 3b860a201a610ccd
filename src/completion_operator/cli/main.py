"""Main CLI entry point using Typer."""

from __future__ import annotations

import typer
from rich.console import Console

from completion_operator import __version__
from completion_operator.cli.commands import reconcile, run, status
from completion_operator.logging.config import configure_logging

app = typer.Typer(
    name="completion-operator",
    help="Kubernetes controller that fills Completion resources from a text-completion API.",
    add_completion=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"completion-operator version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Write console logs as JSON.",
    ),
    log_file: bool = typer.Option(
        True,
        "--log-file/--no-log-file",
        help="Also write JSON logs under ~/.local/state/completion-operator.",
    ),
) -> None:
    """Completion operator - reconcile Completion resources."""
    configure_logging(
        verbose=verbose,
        debug=debug,
        json_output=json_logs,
        log_to_file=log_file,
    )


app.command()(run.run)
app.command()(reconcile.reconcile)
app.command()(status.status)


if __name__ == "__main__":
    app()
