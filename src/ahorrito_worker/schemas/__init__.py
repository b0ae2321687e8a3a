"""Pydantic schemas for Ahorrito API payloads."""

from .bank_api import (
    AccountEntry,
    AccountRef,
    AccountsResponse,
    SyncedAccount,
    SyncResponse,
    TransactionCountResponse,
)
from .worker_api import (
    BatchErrorResponse,
    BatchRunResponse,
    ErrorMetrics,
    RateLimitInfo,
    RateLimitPayload,
)

__all__ = [
    # Categorization endpoint
    "BatchErrorResponse",
    "BatchRunResponse",
    "ErrorMetrics",
    "RateLimitInfo",
    "RateLimitPayload",
    # Accounts / bank sync
    "AccountEntry",
    "AccountRef",
    "AccountsResponse",
    "SyncResponse",
    "SyncedAccount",
    "TransactionCountResponse",
]
