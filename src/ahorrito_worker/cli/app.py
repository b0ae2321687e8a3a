"""Main CLI application for the Ahorrito worker."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from ahorrito_worker import __version__
from ahorrito_worker.cli import sync as sync_cmd
from ahorrito_worker.cli import worker as worker_cmd
from ahorrito_worker.config import get_settings
from ahorrito_worker.logging import setup_logging

app = typer.Typer(
    name="ahorrito",
    help="Adaptive transaction-categorization worker and bank-sync tooling.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ahorrito version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """Ahorrito worker - categorize transactions and sync bank accounts."""
    settings = get_settings()
    log_config = settings.logging

    setup_logging(
        level=settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


# Register subcommands
app.add_typer(worker_cmd.app, name="worker")
app.add_typer(sync_cmd.app, name="sync")


if __name__ == "__main__":
    app()
