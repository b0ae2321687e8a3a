"""Background categorization worker loop.

Repeatedly asks the categorization endpoint to process a batch, folds the
outcome into the adaptive controller, and sleeps for the interval it
returns. Exactly one call is in flight at a time: overlapping calls would
make it impossible to attribute a failure to a batch size.

No failure stops the loop. Transport errors, error payloads and rate
limits all end in a computed delay and another attempt.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, NoReturn, Protocol

from ahorrito_worker.config import WorkerSettings, get_settings
from ahorrito_worker.exceptions import AhorritoClientError
from ahorrito_worker.logging import bind_run, get_logger
from ahorrito_worker.rate_limit.classifier import signal_from_error, signal_from_response
from ahorrito_worker.rate_limit.schemas import RateSignal
from ahorrito_worker.schemas.worker_api import BatchRunResponse

from .controller import AdaptiveController, TuningState
from .statistics import RunStatistics

if TYPE_CHECKING:
    from loguru import Logger

logger = get_logger(__name__)

# Receives the current error streak length and the signal that completed it
FailureStreakCallback = Callable[[int, RateSignal], Awaitable[None] | None]
SleepFunc = Callable[[float], Awaitable[None]]


class BatchClient(Protocol):
    """Anything that can run one categorization batch."""

    async def run_categorization_batch(self, batch_size: int) -> BatchRunResponse: ...


@dataclass(frozen=True)
class IterationResult:
    """Outcome of one loop iteration."""

    state: TuningState
    signal: RateSignal
    sleep_ms: int


class WorkerLoop:
    """Adaptive polling driver for the categorization endpoint.

    Usage:
        async with AhorritoClient() as client:
            loop = WorkerLoop(client)
            await loop.run_forever()

    Tuning state and statistics are threaded through run_iteration() by
    parameter and return value; the loop object itself only holds
    collaborators and callbacks.
    """

    def __init__(
        self,
        client: BatchClient,
        config: WorkerSettings | None = None,
        *,
        controller: AdaptiveController | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the worker loop.

        Args:
            client: Client exposing run_categorization_batch()
            config: Optional worker settings (uses settings if not provided)
            controller: Optional AdaptiveController (default tuning if not provided)
            sleep: Async sleep function (seconds), replaceable in tests
            clock: Monotonic clock for statistics, replaceable in tests
        """
        self._client = client
        self._config = config or get_settings().worker
        self._controller = controller or AdaptiveController()
        self._sleep = sleep
        self._clock = clock

        self._streak_callbacks: list[FailureStreakCallback] = []
        self._callback_tasks: set[asyncio.Task[None]] = set()  # Prevent task GC

    @property
    def controller(self) -> AdaptiveController:
        """The controller deciding batch size and interval."""
        return self._controller

    def new_statistics(self) -> RunStatistics:
        """Fresh statistics for a new process lifetime."""
        return RunStatistics(
            min_sample_for_best=self._config.min_sample_for_best,
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------
    def on_failure_streak(self, callback: FailureStreakCallback) -> None:
        """Register a callback for long failure streaks.

        Fires once per streak, when consecutive errors reach
        alert_after_consecutive_errors. The loop keeps polling regardless.

        Args:
            callback: Async or sync function to call
        """
        self._streak_callbacks.append(callback)

    def _fire_streak_callbacks(self, streak: int, signal: RateSignal) -> None:
        logger.error(
            "{} consecutive failures talking to the categorization endpoint (last: {})",
            streak,
            signal.error,
        )
        for callback in self._streak_callbacks:
            try:
                result = callback(streak, signal)
                if asyncio.iscoroutine(result):
                    task = asyncio.create_task(result)
                    self._callback_tasks.add(task)
                    task.add_done_callback(self._callback_tasks.discard)
            except Exception as e:
                logger.error("Failure-streak callback failed: {}", e)

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------
    async def _call(self, batch_size: int) -> RateSignal:
        try:
            response = await self._client.run_categorization_batch(batch_size)
            return signal_from_response(response)
        except AhorritoClientError as e:
            return signal_from_error(e)
        except Exception as e:
            logger.exception("Unexpected error running batch")
            return RateSignal.transport_failure(repr(e))

    async def run_iteration(self, state: TuningState, stats: RunStatistics) -> IterationResult:
        """Run one batch call and compute what to do next.

        Args:
            state: Tuning state to use for this call
            stats: Statistics to update in place

        Returns:
            IterationResult with the new state, the signal and the sleep to apply
        """
        run_logger = bind_run(stats.total_runs + 1, state.batch_size)
        run_logger.info("Running categorization batch (batch={})", state.batch_size)

        signal = await self._call(state.batch_size)
        new_state = self._controller.update(state, signal)

        processed_before = stats.total_processed
        stats.record(signal, new_state)

        sleep_ms = self._controller.next_sleep_ms(new_state, signal)
        self._log_outcome(run_logger, signal, stats, sleep_ms)

        if new_state.consecutive_errors == self._config.alert_after_consecutive_errors:
            self._fire_streak_callbacks(new_state.consecutive_errors, signal)

        if self._should_report(stats, processed_before):
            self.log_diagnostics(new_state, stats)

        return IterationResult(state=new_state, signal=signal, sleep_ms=sleep_ms)

    @staticmethod
    def _log_outcome(
        run_logger: Logger, signal: RateSignal, stats: RunStatistics, sleep_ms: int
    ) -> None:
        if signal.is_transport_failure:
            run_logger.error("Connection error: {}", signal.error)
        elif not signal.is_success:
            run_logger.warning("Error: {}", signal.error)
        elif signal.items_pending > 0:
            run_logger.info(
                "Found {} pending, categorized {} ({} total)",
                signal.items_pending,
                signal.items_processed,
                stats.total_processed,
            )
        else:
            run_logger.info("No pending transactions")

        if signal.quota is not None:
            run_logger.info(
                "Rate limit: {}/{} calls left",
                signal.quota.remaining,
                signal.quota.limit,
            )
        run_logger.info("Next run in {:.1f}s", sleep_ms / 1000)

    def _should_report(self, stats: RunStatistics, processed_before: int) -> bool:
        if stats.total_runs % self._config.diagnostics_every_runs == 0:
            return True
        every = self._config.diagnostics_every_items
        return processed_before // every < stats.total_processed // every

    def log_diagnostics(self, state: TuningState, stats: RunStatistics) -> None:
        """Log a human-readable performance summary."""
        logger.info(
            "Performance: {} categorized in {:.1f} min | {:.2f} tx/min (best {:.2f}) | "
            "errors {} ({:.1f}%) | rate limits {} | batch={} interval={}ms | pending ~{}",
            stats.total_processed,
            stats.elapsed_seconds / 60,
            stats.throughput_per_minute,
            stats.best_throughput_per_minute,
            stats.total_errors,
            stats.error_rate,
            stats.rate_limit_hits,
            state.batch_size,
            state.interval_ms,
            stats.pending_estimate,
        )
        if stats.best_config is not None:
            logger.info(
                "Best config so far: batch={} interval={}ms",
                stats.best_config.batch_size,
                stats.best_config.interval_ms,
            )
        if stats.last_quota is not None and stats.last_quota.limit > 0:
            logger.info(
                "Quota: {}/{} left, resets in {}s ({})",
                stats.last_quota.remaining,
                stats.last_quota.limit,
                stats.last_quota.seconds_until_reset,
                stats.last_quota.get_status().value,
            )

    # -------------------------------------------------------------------------
    # Driving
    # -------------------------------------------------------------------------
    async def run(
        self,
        max_iterations: int | None = None,
        *,
        state: TuningState | None = None,
        stats: RunStatistics | None = None,
    ) -> tuple[TuningState, RunStatistics]:
        """Run the loop, optionally for a bounded number of iterations.

        The sleep after the last bounded iteration is skipped.

        Args:
            max_iterations: Stop after this many calls (None = forever)
            state: Starting tuning state (seed state if not provided)
            stats: Starting statistics (fresh if not provided)

        Returns:
            Final (state, stats) once max_iterations is reached
        """
        state = state or self._controller.initial_state()
        stats = stats or self.new_statistics()

        iterations = 0
        while max_iterations is None or iterations < max_iterations:
            result = await self.run_iteration(state, stats)
            state = result.state
            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break
            await self._sleep(result.sleep_ms / 1000)

        return state, stats

    async def run_forever(self) -> NoReturn:
        """Poll until the process is terminated."""
        logger.info(
            "Starting categorization worker (endpoint={})",
            getattr(self._client, "worker_endpoint", "custom client"),
        )
        await self.run()
        raise AssertionError("unreachable: worker loop returned")
