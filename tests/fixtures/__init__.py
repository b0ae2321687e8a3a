"""Test fixtures for the Ahorrito worker."""

from .bank_responses import (
    ACCOUNTS_RESPONSE,
    SYNC_REJECTED,
    SYNC_REJECTED_NO_MESSAGE,
    SYNC_SUCCESS,
    TRANSACTION_COUNT_RESPONSE,
)
from .worker_responses import (
    BATCH_IDLE,
    BATCH_SUCCESS,
    BATCH_SUCCESS_BAD_RESET,
    BATCH_SUCCESS_LOW_QUOTA,
    BATCH_SUCCESS_TOTAL_PENDING_ONLY,
    ERROR_GENERIC,
    ERROR_LOWERCASE_PHRASE,
    ERROR_RATE_LIMIT_CODE,
    ERROR_RATE_LIMIT_ENGLISH,
    ERROR_RATE_LIMIT_METRICS,
    ERROR_RATE_LIMIT_NO_HINT,
    ERROR_RATE_LIMIT_SPANISH,
    make_rate_limit,
)

__all__ = [
    # Categorization endpoint
    "BATCH_IDLE",
    "BATCH_SUCCESS",
    "BATCH_SUCCESS_BAD_RESET",
    "BATCH_SUCCESS_LOW_QUOTA",
    "BATCH_SUCCESS_TOTAL_PENDING_ONLY",
    "ERROR_GENERIC",
    "ERROR_LOWERCASE_PHRASE",
    "ERROR_RATE_LIMIT_CODE",
    "ERROR_RATE_LIMIT_ENGLISH",
    "ERROR_RATE_LIMIT_METRICS",
    "ERROR_RATE_LIMIT_NO_HINT",
    "ERROR_RATE_LIMIT_SPANISH",
    "make_rate_limit",
    # Accounts and bank sync
    "ACCOUNTS_RESPONSE",
    "SYNC_REJECTED",
    "SYNC_REJECTED_NO_MESSAGE",
    "SYNC_SUCCESS",
    "TRANSACTION_COUNT_RESPONSE",
]
