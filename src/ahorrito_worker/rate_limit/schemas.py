"""Rate limit telemetry and per-call outcome signals.

These types represent:
- Quota telemetry reported by the categorization endpoint (``rateLimit`` block)
- The outcome of one remote batch call, as fed to the adaptive controller
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, computed_field


class QuotaStatus(StrEnum):
    """Quota health status.

    Thresholds are configurable but defaults are:
    - HEALTHY: > 50% remaining
    - WARNING: 20-50% remaining
    - CRITICAL: 5-20% remaining
    - EXHAUSTED: 0 remaining
    """

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    EXHAUSTED = "exhausted"


class QuotaSnapshot(BaseModel):
    """Quota telemetry for the current rate-limit window.

    Replaced wholesale each time the endpoint reports new telemetry.
    """

    limit: int = Field(ge=0, description="Calls allowed in the current window")
    remaining: int = Field(ge=0, description="Calls remaining in the current window")
    reset_at: datetime = Field(description="UTC datetime when the window resets")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining_percent(self) -> float:
        """Percentage of the window remaining (0.0 to 100.0)."""
        if self.limit == 0:
            return 0.0
        return min(100.0, (self.remaining / self.limit) * 100)

    @property
    def seconds_until_reset(self) -> int:
        """Seconds until the window resets (0 if already past)."""
        delta = self.reset_at - datetime.now(UTC)
        return max(0, int(delta.total_seconds()))

    def is_low(self, ratio: float) -> bool:
        """Whether less than ``ratio`` of the window is left.

        A zero limit means the endpoint reported nothing useful, never "low".
        """
        if self.limit <= 0:
            return False
        return self.remaining < self.limit * ratio

    def get_status(
        self,
        healthy_threshold: float = 50.0,
        warning_threshold: float = 20.0,
        critical_threshold: float = 5.0,
    ) -> QuotaStatus:
        """Determine quota health status.

        Args:
            healthy_threshold: % remaining above which is HEALTHY
            warning_threshold: % remaining above which is WARNING (below healthy)
            critical_threshold: % remaining above which is CRITICAL (below warning)

        Returns:
            QuotaStatus enum value
        """
        if self.remaining == 0:
            return QuotaStatus.EXHAUSTED
        if self.remaining_percent >= healthy_threshold:
            return QuotaStatus.HEALTHY
        if self.remaining_percent >= warning_threshold:
            return QuotaStatus.WARNING
        return QuotaStatus.CRITICAL

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Self:
        """Parse the endpoint's ``rateLimit`` block.

        Missing values default to 0, like the worker always did. ``resetAt``
        is epoch milliseconds.

        Args:
            data: Raw ``rateLimit`` dict

        Returns:
            QuotaSnapshot instance
        """
        reset_ms = int(data.get("resetAt") or 0)
        reset_at = datetime.now(UTC)
        if reset_ms > 0:
            try:
                reset_at = datetime.fromtimestamp(reset_ms / 1000, tz=UTC)
            except (OverflowError, OSError, ValueError):
                # Out-of-range reset time: treat as unknown
                pass
        return cls(
            limit=max(0, int(data.get("limit") or 0)),
            remaining=max(0, int(data.get("remaining") or 0)),
            reset_at=reset_at,
        )


class SignalOutcome(StrEnum):
    """Outcome of one remote batch call."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class RateSignal:
    """Outcome of one remote call, folded into the controller then discarded.

    ``items_processed`` is meaningful only on success and ``is_rate_limited``
    only on failure. ``items_pending`` is a backlog estimate from either.
    """

    outcome: SignalOutcome
    items_processed: int = 0
    items_pending: int = 0
    is_rate_limited: bool = False
    suggested_retry_ms: int | None = None
    quota: QuotaSnapshot | None = None
    is_transport_failure: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if self.items_processed < 0 or self.items_pending < 0:
            raise ValueError("item counts must be non-negative")
        if self.suggested_retry_ms is not None and self.suggested_retry_ms < 0:
            raise ValueError("suggested_retry_ms must be non-negative")

    @property
    def is_success(self) -> bool:
        return self.outcome == SignalOutcome.SUCCESS

    @property
    def is_idle(self) -> bool:
        """A success reporting no pending work at all."""
        return self.is_success and self.items_pending == 0

    @classmethod
    def success(
        cls,
        processed: int,
        pending: int,
        quota: QuotaSnapshot | None = None,
    ) -> RateSignal:
        return cls(
            outcome=SignalOutcome.SUCCESS,
            items_processed=processed,
            items_pending=pending,
            quota=quota,
        )

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        pending: int = 0,
        rate_limited: bool = False,
        retry_after_ms: int | None = None,
        quota: QuotaSnapshot | None = None,
    ) -> RateSignal:
        return cls(
            outcome=SignalOutcome.FAILURE,
            items_pending=pending,
            is_rate_limited=rate_limited,
            suggested_retry_ms=retry_after_ms,
            quota=quota,
            error=error,
        )

    @classmethod
    def transport_failure(cls, error: str) -> RateSignal:
        return cls(
            outcome=SignalOutcome.FAILURE,
            is_transport_failure=True,
            error=error,
        )
