"""Categorization worker commands."""

from __future__ import annotations

import typer
from rich.table import Table

from ahorrito_worker.client import AhorritoClient
from ahorrito_worker.config import get_settings
from ahorrito_worker.pacing import AdaptiveController, RunStatistics, WorkerLoop
from ahorrito_worker.rate_limit import RateSignal

from .common import EndpointOption, MaxRunsOption, console, resolve_endpoint, run_async_command

app = typer.Typer(help="Run and inspect the adaptive categorization worker")


def _alert_failure_streak(streak: int, signal: RateSignal) -> None:
    console.print(
        f"[red]Alert:[/red] {streak} consecutive failures from the categorization endpoint "
        f"(last: {signal.error})"
    )


def _print_summary(stats: RunStatistics) -> None:
    table = Table(title="Worker Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Runs", str(stats.total_runs))
    table.add_row("Categorized", str(stats.total_processed))
    table.add_row("Errors", f"{stats.total_errors} ({stats.error_rate:.1f}%)")
    table.add_row("Rate limits", str(stats.rate_limit_hits))
    table.add_row("Throughput", f"{stats.throughput_per_minute:.2f} tx/min")
    table.add_row("Pending (last seen)", str(stats.pending_estimate))
    if stats.best_config is not None:
        table.add_row(
            "Best config",
            f"batch={stats.best_config.batch_size} interval={stats.best_config.interval_ms}ms",
        )

    console.print()
    console.print(table)


@app.command("run")
def run_worker(
    endpoint: EndpointOption = None,
    max_runs: MaxRunsOption = None,
) -> None:
    """Poll the categorization endpoint with adaptive pacing.

    Runs until interrupted unless --max-runs is given.

    Examples:
        ahorrito worker run
        ahorrito worker run --endpoint cloudflare
        ahorrito worker run --max-runs 20
        ahorrito -v worker run  # Debug logging
    """
    settings = get_settings()
    url = resolve_endpoint(endpoint, settings.worker)

    async def _run() -> RunStatistics:
        async with AhorritoClient(worker_endpoint=url) as client:
            loop = WorkerLoop(
                client,
                settings.worker,
                controller=AdaptiveController(settings.tuning),
            )
            loop.on_failure_streak(_alert_failure_streak)

            if max_runs is None:
                await loop.run_forever()

            state, stats = await loop.run(max_runs)
            loop.log_diagnostics(state, stats)
            return stats

    console.print(f"[bold]Categorization worker[/bold] -> {url}")
    try:
        stats = run_async_command(_run(), error_prefix="Worker failed")
    except KeyboardInterrupt:
        console.print("\n[yellow]Worker stopped[/yellow]")
        return

    _print_summary(stats)


@app.command("config")
def show_config() -> None:
    """Show the effective worker and tuning configuration.

    Values come from defaults, .env and TUNING__*/WORKER__* environment
    variables.
    """
    settings = get_settings()
    tuning = settings.tuning
    worker = settings.worker

    table = Table(title="Adaptive Worker Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Endpoint", worker.endpoint)
    table.add_row("Request timeout", f"{worker.request_timeout_seconds:g}s")
    table.add_row("Initial batch", str(tuning.initial_batch_size))
    table.add_row("Batch bounds", f"{tuning.min_batch_size}-{tuning.max_batch_size}")
    table.add_row(
        "Batch step (+/-)",
        f"+{tuning.batch_increment_step} / -{tuning.batch_decrement_step}",
    )
    table.add_row("Base interval", f"{tuning.base_interval_ms}ms")
    table.add_row("Interval bounds", f"{tuning.min_interval_ms}-{tuning.max_interval_ms}ms")
    table.add_row("Success threshold", str(tuning.success_threshold))
    table.add_row("Error threshold", str(tuning.error_threshold))
    table.add_row("High backlog", str(tuning.high_backlog_threshold))
    table.add_row(
        "Backoff / recovery",
        f"x{tuning.backoff_factor:g} / x{tuning.recovery_factor:g}",
    )
    table.add_row("Transport backoff", f"x{tuning.transport_backoff_factor:g}")
    table.add_row(
        "Quota throttle",
        f"x{tuning.quota_throttle_factor:g} below {tuning.quota_warning_ratio:.0%} remaining",
    )
    table.add_row("Retry margin", f"{tuning.retry_safety_margin_ms}ms")
    table.add_row(
        "Diagnostics",
        f"every {worker.diagnostics_every_runs} runs / {worker.diagnostics_every_items} items",
    )
    table.add_row("Failure alert", f"after {worker.alert_after_consecutive_errors} errors")

    console.print(table)
