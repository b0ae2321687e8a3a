"""Ahorrito client exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .rate_limit.schemas import QuotaSnapshot


class AhorritoClientError(Exception):
    """Base exception for Ahorrito API client errors."""

    pass


class TransportError(AhorritoClientError):
    """Raised when the endpoint cannot be reached at all.

    Network failures, DNS errors, refused connections and timeouts. Never
    carries an application payload.
    """

    pass


class ApplicationError(AhorritoClientError):
    """Raised for a well-formed error response from the endpoint.

    Carries whatever backlog estimate and quota telemetry the error payload
    included, so the caller can still feed them to the controller.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        pending: int = 0,
        quota: QuotaSnapshot | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.pending = pending
        self.quota = quota


class RateLimitError(ApplicationError):
    """Raised when the endpoint rejects a call for exceeding its rate limit."""

    def __init__(
        self,
        message: str,
        retry_after_ms: int | None = None,
        status_code: int | None = None,
        *,
        pending: int = 0,
        quota: QuotaSnapshot | None = None,
    ) -> None:
        super().__init__(message, status_code, pending=pending, quota=quota)
        self.retry_after_ms = retry_after_ms


class SyncFailure(AhorritoClientError):
    """Raised when a bank sync is rejected or throws.

    Terminal for the sync that raised it; the user must re-trigger.
    """

    pass


class SyncAlreadyRunningError(SyncFailure):
    """Raised when a sync is requested for an account that is already syncing."""

    pass
