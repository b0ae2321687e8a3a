"""Adaptive batch/interval controller.

This module decides, run after run, how many transactions to request from
the categorization endpoint and how long to wait before asking again. It
has no visibility into the endpoint's real capacity; it learns from the
outcome of each call.

Policy:
    success  -> recover interval toward base (x recovery_factor),
                grow batch by a step once the success streak hits the
                threshold (step doubled on a large backlog)
    failure  -> rate limited: shrink batch by 2 steps, wait the server's
                hint + margin or back off the interval (x backoff_factor)
                otherwise: shrink batch by 1 step once the error streak
                hits the threshold
    quota    -> less than quota_warning_ratio of the window left:
                stretch the interval (x quota_throttle_factor)

Growth is stepped and gated by a streak; shrinking is immediate and
larger for confirmed rate limits.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Self

from ahorrito_worker.config import TuningConfig, get_settings
from ahorrito_worker.logging import get_logger
from ahorrito_worker.rate_limit.schemas import RateSignal

logger = get_logger(__name__)


@dataclass(frozen=True)
class TuningState:
    """Current batch size and interval plus the outcome streaks.

    Only AdaptiveController produces new states. At most one of the two
    streak counters is non-zero.
    """

    batch_size: int
    interval_ms: int
    consecutive_successes: int = 0
    consecutive_errors: int = 0

    @classmethod
    def initial(cls, config: TuningConfig) -> Self:
        """Seed state from configuration."""
        return cls(
            batch_size=config.initial_batch_size,
            interval_ms=config.base_interval_ms,
        )


class AdaptiveController:
    """Computes the next TuningState from the current one and a RateSignal.

    The controller holds configuration only; all mutable state lives in
    the TuningState passed in and returned.

    Usage:
        controller = AdaptiveController()
        state = TuningState.initial(controller.config)

        signal = RateSignal.success(processed=5, pending=40)
        state = controller.update(state, signal)
        sleep_ms = controller.next_sleep_ms(state, signal)
    """

    def __init__(self, config: TuningConfig | None = None) -> None:
        """Initialize the controller.

        Args:
            config: Optional tuning configuration (uses settings if not provided)
        """
        self._config = config or get_settings().tuning

    @property
    def config(self) -> TuningConfig:
        """Get the tuning configuration."""
        return self._config

    def initial_state(self) -> TuningState:
        """Seed state for a fresh process."""
        return TuningState.initial(self._config)

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------
    def update(self, state: TuningState, signal: RateSignal) -> TuningState:
        """Fold one call outcome into the tuning state.

        Args:
            state: Current tuning state
            signal: Outcome of the call made with state.batch_size

        Returns:
            New tuning state, always within the configured bounds
        """
        if signal.is_transport_failure:
            return self.apply_transport_backoff(state)

        if signal.is_success:
            new_state = self._on_success(state, signal)
        else:
            new_state = self._on_failure(state, signal)

        if signal.quota is not None and signal.quota.is_low(self._config.quota_warning_ratio):
            throttled = int(new_state.interval_ms * self._config.quota_throttle_factor)
            logger.warning(
                "Approaching rate limit ({}/{} left), slowing to {}ms",
                signal.quota.remaining,
                signal.quota.limit,
                min(throttled, self._config.max_interval_ms),
            )
            new_state = replace(new_state, interval_ms=throttled)

        return self._clamp(new_state)

    def _on_success(self, state: TuningState, signal: RateSignal) -> TuningState:
        cfg = self._config
        successes = state.consecutive_successes + 1
        interval = state.interval_ms
        batch = state.batch_size

        # Gradual recovery after a slowdown
        if interval > cfg.base_interval_ms:
            interval = max(cfg.min_interval_ms, math.floor(interval * cfg.recovery_factor))
            logger.debug("Recovering interval to {}ms", interval)

        if successes >= cfg.success_threshold and batch < cfg.max_batch_size:
            increment = cfg.batch_increment_step
            if signal.items_pending > cfg.high_backlog_threshold:
                increment *= 2
            batch = min(cfg.max_batch_size, batch + increment)
            successes = 0
            logger.info("Throughput healthy, growing batch to {}", batch)

        return TuningState(
            batch_size=batch,
            interval_ms=interval,
            consecutive_successes=successes,
            consecutive_errors=0,
        )

    def _on_failure(self, state: TuningState, signal: RateSignal) -> TuningState:
        cfg = self._config
        errors = state.consecutive_errors + 1
        interval = state.interval_ms
        batch = state.batch_size

        if signal.is_rate_limited:
            batch = max(cfg.min_batch_size, batch - cfg.batch_decrement_step * 2)
            if signal.suggested_retry_ms is not None:
                # A short hint never undercuts a slowdown already in place
                interval = max(interval, signal.suggested_retry_ms + cfg.retry_safety_margin_ms)
            else:
                interval = min(cfg.max_interval_ms, math.floor(interval * cfg.backoff_factor))
            logger.warning(
                "Rate limit hit, batch={} interval={}ms",
                batch,
                min(interval, cfg.max_interval_ms),
            )
        elif errors >= cfg.error_threshold:
            batch = max(cfg.min_batch_size, batch - cfg.batch_decrement_step)
            logger.warning("Error detected, shrinking batch to {}", batch)

        return TuningState(
            batch_size=batch,
            interval_ms=interval,
            consecutive_successes=0,
            consecutive_errors=errors,
        )

    def apply_transport_backoff(self, state: TuningState) -> TuningState:
        """Back off after the endpoint could not be reached.

        Independent of the error-threshold path: a connection failure always
        slows down and never touches the batch size.

        Args:
            state: Current tuning state

        Returns:
            New tuning state with a longer interval
        """
        interval = min(
            self._config.max_interval_ms,
            math.floor(state.interval_ms * self._config.transport_backoff_factor),
        )
        return self._clamp(
            TuningState(
                batch_size=state.batch_size,
                interval_ms=interval,
                consecutive_successes=0,
                consecutive_errors=state.consecutive_errors + 1,
            )
        )

    def _clamp(self, state: TuningState) -> TuningState:
        cfg = self._config
        return replace(
            state,
            batch_size=min(cfg.max_batch_size, max(cfg.min_batch_size, state.batch_size)),
            interval_ms=min(cfg.max_interval_ms, max(cfg.min_interval_ms, state.interval_ms)),
        )

    # -------------------------------------------------------------------------
    # Sleep Calculation
    # -------------------------------------------------------------------------
    def next_sleep_ms(self, state: TuningState, signal: RateSignal) -> int:
        """Milliseconds to wait before the next call.

        The state's interval, with two floors:
        - idle (success with nothing pending): base x idle_interval_multiplier
        - rate limited with a hint: hint + margin, even past max_interval_ms

        Args:
            state: State returned by update() for this signal
            signal: The signal that produced it

        Returns:
            Sleep duration in milliseconds
        """
        sleep_ms = state.interval_ms

        if signal.is_idle:
            idle_floor = math.ceil(
                self._config.base_interval_ms * self._config.idle_interval_multiplier
            )
            sleep_ms = max(sleep_ms, idle_floor)

        if signal.is_rate_limited and signal.suggested_retry_ms is not None:
            hinted = signal.suggested_retry_ms + self._config.retry_safety_margin_ms
            sleep_ms = max(sleep_ms, hinted)

        return sleep_ms
