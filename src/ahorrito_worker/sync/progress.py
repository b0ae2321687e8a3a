"""Simulated progress for bank-account syncs.

The bank-sync endpoint is one long call with no progress callback. This
module shows the user a counter that moves anyway: it estimates the total
up front, walks through timed phase checkpoints while the call is in
flight, and reconciles with the real count once the call resolves.

Two rules hold regardless of timing:
- the displayed count never decreases
- it never reaches the pre-completion ceiling before the real outcome
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Protocol

from ahorrito_worker.config import SyncConfig, get_settings

logger = logging.getLogger(__name__)


class SyncPhase(StrEnum):
    """Phase of a simulated sync.

    Ordered CONNECTING -> FETCHING -> SYNCING -> PROCESSING -> COMPLETE.
    ERROR is reachable from any non-terminal phase.
    """

    CONNECTING = "connecting"
    FETCHING = "fetching"
    SYNCING = "syncing"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


_PHASE_ORDER = [
    SyncPhase.CONNECTING,
    SyncPhase.FETCHING,
    SyncPhase.SYNCING,
    SyncPhase.PROCESSING,
    SyncPhase.COMPLETE,
]

_PHASE_STATUS = {
    SyncPhase.CONNECTING: "Connecting to bank...",
    SyncPhase.FETCHING: "Fetching account data...",
    SyncPhase.SYNCING: "Syncing transactions...",
    SyncPhase.PROCESSING: "Processing transactions...",
}


@dataclass(frozen=True)
class SyncSeed:
    """What is known about an account before its sync starts."""

    account_name: str = "Account"
    last_known_count: int = 0


@dataclass(frozen=True)
class SyncProgress:
    """Snapshot of one account's sync as shown to the user."""

    account_id: str
    account_name: str
    estimated_total: int
    displayed_current: int = 0
    phase: SyncPhase = SyncPhase.CONNECTING
    final_total: int | None = None
    actual_count: int | None = None
    error: str | None = None

    @property
    def total(self) -> int:
        """Denominator to display: the real total once known, else the estimate."""
        return self.final_total if self.final_total is not None else self.estimated_total

    @property
    def progress_percent(self) -> float:
        """Displayed completion percentage (0-100)."""
        if self.total <= 0:
            return 0.0
        return min(100.0, (self.displayed_current / self.total) * 100)

    @property
    def is_complete(self) -> bool:
        return self.phase == SyncPhase.COMPLETE

    @property
    def has_error(self) -> bool:
        return self.phase == SyncPhase.ERROR

    @property
    def is_done(self) -> bool:
        """Whether the sync reached a terminal phase."""
        return self.phase in (SyncPhase.COMPLETE, SyncPhase.ERROR)

    @property
    def status(self) -> str:
        """Human-readable status line."""
        if self.phase == SyncPhase.COMPLETE:
            return f"Successfully synced {self.actual_count or 0} transactions"
        if self.phase == SyncPhase.ERROR:
            return self.error or "Failed to sync transactions"
        return _PHASE_STATUS[self.phase]


class ProgressPresenter(Protocol):
    """Presentation layer for sync progress, keyed by account."""

    def start(self, account_id: str, seed: SyncProgress) -> None: ...

    def update(self, account_id: str, progress: SyncProgress) -> None: ...

    def dismiss(self, account_id: str) -> None: ...


# Performs the real sync and returns the number of transactions it synced
SyncCall = Callable[[], Awaitable[int]]
SleepFunc = Callable[[float], Awaitable[None]]


def estimate_total(last_known_count: int, config: SyncConfig | None = None) -> int:
    """Estimate how many transactions a sync will report.

    The known count plus a proportional buffer for new transactions, with
    floors on both the buffer and the total.

    Args:
        last_known_count: Transactions the account had before this sync
        config: Optional sync configuration (uses settings if not provided)

    Returns:
        Estimated total
    """
    cfg = config or get_settings().sync
    count = max(0, last_known_count)
    buffer = max(cfg.min_buffer, math.ceil(count * cfg.buffer_ratio))
    return max(count + buffer, cfg.min_total)


class SyncProgressSimulator:
    """Drives the displayed progress for one account's sync.

    Usage:
        board = SyncProgressBoard()
        simulator = SyncProgressSimulator("acc_1", SyncSeed("Checking", 120), board)
        progress = await simulator.run(lambda: perform_sync())
        print(progress.status)

    Each instance owns its state; concurrent syncs for different accounts
    use separate instances and share nothing.
    """

    def __init__(
        self,
        account_id: str,
        seed: SyncSeed,
        presenter: ProgressPresenter | None = None,
        config: SyncConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the simulator.

        Args:
            account_id: Account being synced
            seed: Prior knowledge used for the estimate
            presenter: Optional presentation layer to notify
            config: Optional sync configuration (uses settings if not provided)
            sleep: Async sleep function (seconds), replaceable in tests
        """
        self._config = config or get_settings().sync
        self._presenter = presenter
        self._sleep = sleep

        estimated = estimate_total(seed.last_known_count, self._config)
        self._progress = SyncProgress(
            account_id=account_id,
            account_name=seed.account_name,
            estimated_total=estimated,
        )
        # Highest value shown before the call resolves, strictly below the ceiling
        self._ceiling = max(0, math.ceil(estimated * self._config.pre_completion_ceiling) - 1)

        self._resolved = False
        self._dismissed = False
        self._ticker: asyncio.Task[None] | None = None
        self._dismiss_task: asyncio.Task[None] | None = None
        self._dismissed_event = asyncio.Event()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------
    @property
    def account_id(self) -> str:
        return self._progress.account_id

    @property
    def progress(self) -> SyncProgress:
        """Current snapshot."""
        return self._progress

    @property
    def phase(self) -> SyncPhase:
        return self._progress.phase

    @property
    def ceiling(self) -> int:
        """Highest count displayable before the real result arrives."""
        return self._ceiling

    @property
    def is_dismissed(self) -> bool:
        return self._dismissed

    async def wait_dismissed(self) -> None:
        """Wait until the display was dismissed (automatically or by the user)."""
        await self._dismissed_event.wait()

    # -------------------------------------------------------------------------
    # State Changes
    # -------------------------------------------------------------------------
    def _advance(self, value: int) -> None:
        """Raise the displayed count, never lowering it."""
        if not self._resolved:
            value = min(value, self._ceiling)
        if value > self._progress.displayed_current:
            self._progress = replace(self._progress, displayed_current=value)

    def _enter_phase(self, phase: SyncPhase) -> None:
        """Move forward to a phase (ERROR from any non-terminal phase)."""
        current = self._progress.phase
        if self._progress.is_done:
            return
        if phase != SyncPhase.ERROR and _PHASE_ORDER.index(phase) <= _PHASE_ORDER.index(current):
            return
        self._progress = replace(self._progress, phase=phase)

    def _publish(self) -> None:
        if self._presenter is None or self._dismissed:
            return
        try:
            self._presenter.update(self.account_id, self._progress)
        except Exception as e:
            logger.warning("Progress presenter error: %s", e)

    # -------------------------------------------------------------------------
    # Timer
    # -------------------------------------------------------------------------
    async def _tick(self) -> None:
        """Cosmetic timer: phase checkpoints, then small steps while syncing."""
        cfg = self._config
        estimated = self._progress.estimated_total

        await self._sleep(cfg.connect_delay_ms / 1000)
        self._enter_phase(SyncPhase.FETCHING)
        self._advance(math.floor(estimated * cfg.fetching_checkpoint))
        self._publish()

        await self._sleep(cfg.fetch_delay_ms / 1000)
        self._enter_phase(SyncPhase.SYNCING)
        self._advance(math.floor(estimated * cfg.syncing_checkpoint))
        self._publish()

        step = max(1, math.ceil(estimated * cfg.tick_increment))
        while self._progress.displayed_current < self._ceiling:
            await self._sleep(cfg.tick_interval_ms / 1000)
            self._advance(self._progress.displayed_current + step)
            self._publish()

    def _stop_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()

    def _on_call_done(self, _task: asyncio.Task[int]) -> None:
        # Runs before run() resumes: the real result always beats the timer
        self._resolved = True
        self._stop_ticker()

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------
    async def run(self, sync_call: SyncCall) -> SyncProgress:
        """Run the real sync while animating progress.

        Failures are reported to the presenter exactly once as an ERROR
        phase and are not re-raised; nothing is retried.

        Args:
            sync_call: Factory for the coroutine performing the real sync

        Returns:
            Final snapshot (COMPLETE or ERROR)
        """
        logger.info(
            "Starting sync for %s (estimated_total=%d)",
            self.account_id,
            self._progress.estimated_total,
        )
        if self._presenter is not None:
            self._presenter.start(self.account_id, self._progress)

        call_task: asyncio.Task[int] = asyncio.ensure_future(sync_call())
        self._ticker = asyncio.create_task(self._tick())
        call_task.add_done_callback(self._on_call_done)

        try:
            actual = await call_task
        except Exception as e:
            self._fail(str(e) or "Failed to sync transactions")
        else:
            await self._complete(actual)
        finally:
            self._stop_ticker()

        self._schedule_dismiss()
        return self._progress

    async def _complete(self, actual: int) -> None:
        cfg = self._config
        final_total = max(actual, self._progress.estimated_total)
        self._progress = replace(self._progress, final_total=final_total, actual_count=actual)

        self._enter_phase(SyncPhase.PROCESSING)
        self._advance(math.floor(final_total * cfg.processing_checkpoint))
        self._publish()

        await self._sleep(cfg.processing_delay_ms / 1000)

        self._enter_phase(SyncPhase.COMPLETE)
        self._advance(final_total)
        self._publish()
        logger.info("Sync complete for %s: %d transactions", self.account_id, actual)

    def _fail(self, message: str) -> None:
        self._enter_phase(SyncPhase.ERROR)
        self._progress = replace(self._progress, error=message)
        self._publish()
        logger.error("Sync failed for %s: %s", self.account_id, message)

    # -------------------------------------------------------------------------
    # Dismissal
    # -------------------------------------------------------------------------
    def _schedule_dismiss(self) -> None:
        if self._dismissed:
            return
        self._dismiss_task = asyncio.create_task(self._auto_dismiss())

    async def _auto_dismiss(self) -> None:
        await self._sleep(self._config.dismiss_delay_ms / 1000)
        self.dismiss()

    def dismiss(self) -> None:
        """Hide the progress display.

        Stops the cosmetic timer only. A sync still in flight keeps running
        server-side; its result updates this snapshot but is not shown.
        """
        if self._dismissed:
            return
        self._stop_ticker()
        self._dismissed = True
        if self._presenter is not None:
            try:
                self._presenter.dismiss(self.account_id)
            except Exception as e:
                logger.warning("Progress presenter error: %s", e)
        self._dismissed_event.set()
