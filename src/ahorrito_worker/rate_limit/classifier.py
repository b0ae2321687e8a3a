"""Classification of categorization endpoint responses.

Turns a parsed response into either a success RateSignal or an
ApplicationError / RateLimitError, and turns caught client errors back
into failure signals for the controller.

Rate-limit detection prefers structured fields (``code`` or a
``metrics.rateLimitInfo`` block). The text fallback matches the
case-sensitive phrase "Rate Limit" in the error message and pulls the
retry-after seconds from "Espera Ns" / "Wait Ns"; if the server rewords
its message the fallback silently stops matching.
"""

from __future__ import annotations

import re

from ahorrito_worker.exceptions import (
    AhorritoClientError,
    ApplicationError,
    RateLimitError,
    TransportError,
)
from ahorrito_worker.schemas.worker_api import (
    BatchErrorResponse,
    BatchRunResponse,
    RateLimitPayload,
)

from .schemas import QuotaSnapshot, RateSignal

RATE_LIMIT_PHRASE = "Rate Limit"
RATE_LIMIT_CODE = "rate_limited"

_RETRY_PATTERNS = (
    re.compile(r"Espera (\d+)s"),
    re.compile(r"Wait (\d+)s"),
)


def quota_from_payload(payload: RateLimitPayload | None) -> QuotaSnapshot | None:
    """Convert a ``rateLimit`` block into a QuotaSnapshot (None if absent)."""
    if payload is None:
        return None
    return QuotaSnapshot.from_payload(payload.model_dump(by_alias=True))


def is_rate_limit_error(response: BatchErrorResponse) -> bool:
    """Whether an error payload means "slow down" rather than a generic failure."""
    if response.code == RATE_LIMIT_CODE:
        return True
    if response.metrics is not None and response.metrics.rate_limit_info is not None:
        return True
    return RATE_LIMIT_PHRASE in response.error


def extract_retry_after_ms(response: BatchErrorResponse) -> int | None:
    """Get the server's suggested wait in milliseconds.

    The message patterns are checked first, then ``metrics.rateLimitInfo.resetIn``.

    Returns:
        Milliseconds to wait, or None when the server gave no hint
    """
    for pattern in _RETRY_PATTERNS:
        match = pattern.search(response.error)
        if match:
            return int(match.group(1)) * 1000

    info = response.metrics.rate_limit_info if response.metrics else None
    if info is not None and info.reset_in is not None:
        return max(0, info.reset_in) * 1000
    return None


def error_from_payload(
    response: BatchErrorResponse,
    status_code: int | None = None,
) -> ApplicationError:
    """Build the exception matching an error payload.

    Args:
        response: Parsed error payload
        status_code: HTTP status it arrived with

    Returns:
        RateLimitError for throttling, ApplicationError otherwise
    """
    quota = quota_from_payload(response.rate_limit)
    pending = response.found_pending or 0

    if is_rate_limit_error(response):
        return RateLimitError(
            response.error,
            retry_after_ms=extract_retry_after_ms(response),
            status_code=status_code,
            pending=pending,
            quota=quota,
        )

    message = response.error
    if response.details:
        message = f"{message} ({response.details})"
    return ApplicationError(message, status_code, pending=pending, quota=quota)


def signal_from_response(response: BatchRunResponse) -> RateSignal:
    """Build a success signal from a batch run response."""
    return RateSignal.success(
        processed=response.successfully_categorized_in_db,
        pending=response.pending,
        quota=quota_from_payload(response.rate_limit),
    )


def signal_from_error(error: AhorritoClientError) -> RateSignal:
    """Build a failure signal from a caught client error.

    Args:
        error: TransportError, ApplicationError or RateLimitError

    Returns:
        Failure RateSignal
    """
    if isinstance(error, TransportError):
        return RateSignal.transport_failure(str(error))

    if isinstance(error, RateLimitError):
        return RateSignal.failure(
            str(error),
            pending=error.pending,
            rate_limited=True,
            retry_after_ms=error.retry_after_ms,
            quota=error.quota,
        )

    if isinstance(error, ApplicationError):
        return RateSignal.failure(str(error), pending=error.pending, quota=error.quota)

    return RateSignal.failure(str(error))
