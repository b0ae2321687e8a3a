"""Common CLI option factories and helpers.

This module centralizes reusable CLI options to reduce duplication
and consolidate noqa comments for Typer's required function call pattern.

It also provides:
- `run_async_command`: Unified async execution with error handling for CLI commands
- `resolve_endpoint`: Maps the --endpoint shorthand to a URL
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Annotated, TypeVar

import typer
from rich.console import Console

from ahorrito_worker.config import WorkerSettings

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from synchronous CLI command with unified error handling.

    Uses asyncio.run() for clean event loop management. Catches exceptions,
    prints user-friendly error messages, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


# Typer requires function calls as default arguments, which triggers B008.
# Using Annotated with a centralized type alias keeps the noqa in one place.

EndpointOption = Annotated[
    str | None,
    typer.Option(
        "--endpoint",
        "-e",
        help="Categorization endpoint: 'local', 'cloudflare' or a full URL. "
        "Defaults to WORKER__USE_CLOUDFLARE selection.",
    ),
]
"""Worker endpoint selection option.

Usage:
    def run(endpoint: EndpointOption = None) -> None:
"""

MaxRunsOption = Annotated[
    int | None,
    typer.Option(
        "--max-runs",
        "-n",
        min=1,
        help="Stop after this many batch calls (default: run until interrupted)",
    ),
]
"""Bounded-run option for the worker loop.

Usage:
    def run(max_runs: MaxRunsOption = None) -> None:
"""

AccountArgument = Annotated[
    str,
    typer.Argument(help="Ahorrito account ID to sync"),
]
"""Required positional account ID argument."""

PlaidIdOption = Annotated[
    str | None,
    typer.Option(
        "--plaid-id",
        help="Bank-aggregator account ID (looked up from the account list if omitted)",
    ),
]
"""Optional bank connection override."""


# -----------------------------------------------------------------------------
# Validation Helpers
# -----------------------------------------------------------------------------


def resolve_endpoint(value: str | None, worker: WorkerSettings) -> str:
    """Translate an --endpoint value into a URL.

    Args:
        value: 'local', 'cloudflare', a full http(s) URL, or None
        worker: Worker settings holding the known endpoints

    Returns:
        Endpoint URL

    Raises:
        typer.Exit(1): If the value is neither a known name nor a URL
    """
    if value is None:
        return worker.endpoint

    lowered = value.lower()
    if lowered == "local":
        return worker.local_endpoint
    if lowered == "cloudflare":
        return worker.cloudflare_endpoint
    if lowered.startswith(("http://", "https://")):
        return value

    console.print(
        f"[red]Error:[/red] Unknown endpoint '{value}'. Use local, cloudflare or a URL"
    )
    raise typer.Exit(1)
