"""Async Ahorrito API client using httpx.

This module provides a typed async interface to the endpoints the worker
and the bank-sync flow depend on:
- POST the categorization worker endpoint (batch runs)
- GET /api/accounts and /api/transactions/count (sync estimate seed)
- POST /api/truelayer/sync (bank sync trigger)
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from ahorrito_worker.config import get_settings
from ahorrito_worker.logging import get_logger
from ahorrito_worker.schemas.bank_api import (
    AccountsResponse,
    SyncResponse,
    TransactionCountResponse,
)
from ahorrito_worker.schemas.worker_api import BatchErrorResponse, BatchRunResponse

from .exceptions import (
    AhorritoClientError,
    ApplicationError,
    RateLimitError,
    TransportError,
)
from .rate_limit.classifier import error_from_payload

logger = get_logger(__name__)

ACCOUNTS_PATH = "/api/accounts"
TRANSACTION_COUNT_PATH = "/api/transactions/count"
BANK_SYNC_PATH = "/api/truelayer/sync"


class AhorritoClient:
    """Async client for the Ahorrito web API.

    Usage:
        async with AhorritoClient() as client:
            result = await client.run_categorization_batch(batch_size=5)
            print(result.successfully_categorized_in_db)

    Or without context manager:
        client = AhorritoClient()
        accounts = await client.get_accounts()
        await client.close()
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        worker_endpoint: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API base URL. If not provided, uses API_BASE_URL from settings.
            worker_endpoint: Categorization endpoint URL. If not provided, the
                             endpoint selected by the worker settings is used.
            timeout: Request timeout in seconds (worker settings default).
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        settings = get_settings()
        self._base_url = base_url or settings.api_base_url
        self._worker_endpoint = worker_endpoint or settings.worker.endpoint
        self._timeout = timeout if timeout is not None else settings.worker.request_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def _http(self) -> httpx.AsyncClient:
        """Get or create the httpx client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    @property
    def worker_endpoint(self) -> str:
        """Categorization endpoint this client posts batches to."""
        return self._worker_endpoint

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> AhorritoClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------
    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping connection-level failures to TransportError."""
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"Cannot reach {url}: {e!r}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        """Decode a JSON body (None if the body is not JSON)."""
        try:
            return response.json()
        except ValueError:
            return None

    # -------------------------------------------------------------------------
    # Categorization Worker
    # -------------------------------------------------------------------------
    async def run_categorization_batch(self, batch_size: int) -> BatchRunResponse:
        """Ask the endpoint to categorize up to ``batch_size`` transactions.

        Args:
            batch_size: Number of pending transactions to process

        Returns:
            BatchRunResponse with processed and pending counts

        Raises:
            TransportError: If the endpoint cannot be reached
            RateLimitError: If the endpoint rejected the call for throttling
            ApplicationError: For any other error response
        """
        response = await self._request(
            "POST",
            self._worker_endpoint,
            params={"batch_size": batch_size},
        )
        payload = self._json(response)

        if isinstance(payload, dict) and payload.get("error"):
            try:
                error_payload = BatchErrorResponse.model_validate(payload)
            except ValidationError as e:
                raise ApplicationError(str(payload.get("error")), response.status_code) from e
            raise error_from_payload(error_payload, response.status_code)

        if response.is_error or not isinstance(payload, dict):
            raise self._handle_error(response)

        try:
            return BatchRunResponse.model_validate(payload)
        except ValidationError as e:
            raise ApplicationError(f"Malformed batch response: {e}", response.status_code) from e

    # -------------------------------------------------------------------------
    # Accounts & Bank Sync
    # -------------------------------------------------------------------------
    async def get_accounts(self) -> AccountsResponse:
        """List the user's accounts with their transaction counts.

        Raises:
            TransportError: If the API cannot be reached
            ApplicationError: On an error response
        """
        response = await self._request("GET", ACCOUNTS_PATH)
        if response.is_error:
            raise self._handle_error(response)
        return self._validate(AccountsResponse, response)

    async def get_transaction_count(self) -> int:
        """Total number of transactions for the user.

        Raises:
            TransportError: If the API cannot be reached
            ApplicationError: On an error response
        """
        response = await self._request("GET", TRANSACTION_COUNT_PATH)
        if response.is_error:
            raise self._handle_error(response)
        return self._validate(TransactionCountResponse, response).total

    async def sync_bank_account(self, plaid_id: str) -> SyncResponse:
        """Trigger a full bank sync for one connected account.

        The response may still report ``success: false``; interpreting that
        is up to the caller.

        Args:
            plaid_id: Bank-aggregator account ID

        Raises:
            TransportError: If the API cannot be reached
            ApplicationError: On an error response without a sync payload
        """
        response = await self._request(
            "POST",
            BANK_SYNC_PATH,
            json={"account_id": plaid_id, "force": True, "balanceOnly": False},
        )
        payload = self._json(response)
        if response.is_error and not (isinstance(payload, dict) and "success" in payload):
            raise self._handle_error(response)
        return self._validate(SyncResponse, response)

    # -------------------------------------------------------------------------
    # Error Handling
    # -------------------------------------------------------------------------
    def _validate(self, model: Any, response: httpx.Response) -> Any:
        try:
            return model.model_validate(self._json(response))
        except ValidationError as e:
            raise ApplicationError(
                f"Malformed response from {response.request.url.path}: {e}",
                response.status_code,
            ) from e

    def _handle_error(self, response: httpx.Response) -> AhorritoClientError:
        """Convert an error response without a usable payload to our exceptions."""
        status = response.status_code

        if status == 429:
            retry_after = response.headers.get("retry-after", "")
            retry_after_ms = int(retry_after) * 1000 if retry_after.isdigit() else None
            return RateLimitError(
                f"Rate Limit exceeded (HTTP {status})",
                retry_after_ms=retry_after_ms,
                status_code=status,
            )

        reason = response.reason_phrase or "error"
        logger.debug("HTTP {} from {}: {}", status, response.request.url, response.text[:200])
        return ApplicationError(f"HTTP {status} {reason}", status)
