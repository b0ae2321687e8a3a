"""Bank sync commands."""

from __future__ import annotations

import typer
from rich.progress import BarColumn, Progress, TaskID, TextColumn

from ahorrito_worker.client import AhorritoClient
from ahorrito_worker.config import get_settings
from ahorrito_worker.sync import BankSyncService, SyncProgress, SyncProgressBoard

from .common import AccountArgument, PlaidIdOption, console, run_async_command

app = typer.Typer(help="Sync bank accounts with simulated progress")


@app.command("account")
def sync_account(
    account_id: AccountArgument,
    plaid_id: PlaidIdOption = None,
) -> None:
    """Trigger a full bank sync for one account.

    Examples:
        ahorrito sync account acc_123
        ahorrito sync account acc_123 --plaid-id tl_456
    """
    settings = get_settings()

    async def _sync() -> SyncProgress:
        board = SyncProgressBoard()
        with Progress(
            TextColumn("[bold]{task.fields[account]}[/bold]"),
            BarColumn(bar_width=40, complete_style="green", finished_style="green"),
            TextColumn("{task.completed:.0f}/{task.total:.0f}"),
            TextColumn("{task.description}"),
            console=console,
            transient=True,
        ) as bar:
            tasks: dict[str, TaskID] = {}

            def _render(account: str, progress: SyncProgress | None) -> None:
                if progress is None:
                    return
                if account not in tasks:
                    tasks[account] = bar.add_task(
                        progress.status,
                        total=progress.total,
                        account=progress.account_name,
                    )
                bar.update(
                    tasks[account],
                    completed=progress.displayed_current,
                    total=progress.total,
                    description=progress.status,
                )

            board.on_change(_render)
            async with AhorritoClient() as client:
                service = BankSyncService(client, board, settings.sync)
                return await service.sync_account(account_id, plaid_id)

    progress = run_async_command(_sync(), error_prefix="Sync failed")

    if progress.has_error:
        console.print(f"[red]Error:[/red] {progress.status}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] {progress.account_name}: {progress.status}")
