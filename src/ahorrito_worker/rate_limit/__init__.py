"""Rate limit telemetry and response classification.

This module turns categorization endpoint responses into the signals the
adaptive controller learns from.
"""

from .classifier import (
    error_from_payload,
    extract_retry_after_ms,
    is_rate_limit_error,
    quota_from_payload,
    signal_from_error,
    signal_from_response,
)
from .schemas import QuotaSnapshot, QuotaStatus, RateSignal, SignalOutcome

__all__ = [
    "QuotaSnapshot",
    "QuotaStatus",
    "RateSignal",
    "SignalOutcome",
    "error_from_payload",
    "extract_retry_after_ms",
    "is_rate_limit_error",
    "quota_from_payload",
    "signal_from_error",
    "signal_from_response",
]
