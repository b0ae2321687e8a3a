"""Process-lifetime run statistics for the categorization worker."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ahorrito_worker.rate_limit.schemas import QuotaSnapshot, RateSignal

from .controller import TuningState


@dataclass(frozen=True)
class BestConfig:
    """Batch/interval pair that produced the best observed throughput."""

    batch_size: int
    interval_ms: int


@dataclass
class RunStatistics:
    """Counters accumulated over the life of one worker process.

    Counters only grow. ``best_config`` is a hint for operators: it is the
    pair in effect when throughput last peaked, gated by a minimum sample
    size, not a statistically sound optimum.
    """

    min_sample_for_best: int = 10
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    total_processed: int = 0
    total_errors: int = 0
    total_runs: int = 0
    rate_limit_hits: int = 0
    transport_errors: int = 0
    started_at: float = field(default=0.0)
    best_throughput_per_minute: float = 0.0
    best_config: BestConfig | None = None
    last_quota: QuotaSnapshot | None = None
    last_rate_limit_at: float | None = None
    last_run_status: str | None = None
    pending_estimate: int = 0

    def __post_init__(self) -> None:
        if not self.started_at:
            self.started_at = self.clock()

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------
    def record(self, signal: RateSignal, state: TuningState) -> None:
        """Fold one call outcome into the counters.

        Args:
            signal: Outcome of the call
            state: Tuning state after the controller consumed the signal
        """
        self.total_runs += 1

        if signal.quota is not None:
            self.last_quota = signal.quota

        if signal.is_success:
            self.total_processed += signal.items_processed
            self.pending_estimate = signal.items_pending
            self.last_run_status = "success"
        else:
            self.total_errors += 1
            self.last_run_status = "error"
            if signal.is_transport_failure:
                self.transport_errors += 1
            else:
                self.pending_estimate = signal.items_pending
            if signal.is_rate_limited:
                self.rate_limit_hits += 1
                self.last_rate_limit_at = self.clock()

        self._update_best(state)

    def _update_best(self, state: TuningState) -> None:
        throughput = self.throughput_per_minute
        if (
            throughput > self.best_throughput_per_minute
            and self.total_processed > self.min_sample_for_best
        ):
            self.best_throughput_per_minute = throughput
            self.best_config = BestConfig(
                batch_size=state.batch_size,
                interval_ms=state.interval_ms,
            )

    # -------------------------------------------------------------------------
    # Derived Values
    # -------------------------------------------------------------------------
    @property
    def elapsed_seconds(self) -> float:
        """Seconds since the process started."""
        return max(0.0, self.clock() - self.started_at)

    @property
    def throughput_per_minute(self) -> float:
        """Transactions categorized per minute since start."""
        minutes = self.elapsed_seconds / 60
        if minutes <= 0:
            return 0.0
        return self.total_processed / minutes

    @property
    def error_rate(self) -> float:
        """Percentage of runs that failed (0-100)."""
        if self.total_runs == 0:
            return 0.0
        return (self.total_errors / self.total_runs) * 100

    def to_dict(self) -> dict[str, Any]:
        """Export statistics as a dictionary (for logging/metrics)."""
        return {
            "total_processed": self.total_processed,
            "total_errors": self.total_errors,
            "total_runs": self.total_runs,
            "rate_limit_hits": self.rate_limit_hits,
            "transport_errors": self.transport_errors,
            "elapsed_minutes": round(self.elapsed_seconds / 60, 2),
            "throughput_per_minute": round(self.throughput_per_minute, 2),
            "error_rate": round(self.error_rate, 1),
            "best_throughput_per_minute": round(self.best_throughput_per_minute, 2),
            "best_config": (
                {
                    "batch_size": self.best_config.batch_size,
                    "interval_ms": self.best_config.interval_ms,
                }
                if self.best_config
                else None
            ),
            "pending_estimate": self.pending_estimate,
            "last_quota": (
                {
                    "limit": self.last_quota.limit,
                    "remaining": self.last_quota.remaining,
                    "reset_at": self.last_quota.reset_at.isoformat(),
                }
                if self.last_quota
                else None
            ),
        }
