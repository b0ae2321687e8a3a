"""Bank Sync Service - one-account sync with simulated progress.

Looks up what is known about the account, runs the bank-sync call through
a SyncProgressSimulator, and turns rejected syncs into SyncFailure.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ahorrito_worker.config import SyncConfig, get_settings
from ahorrito_worker.exceptions import AhorritoClientError, SyncAlreadyRunningError, SyncFailure
from ahorrito_worker.logging import LogContext, bind_account, get_logger

from .progress import ProgressPresenter, SleepFunc, SyncProgress, SyncProgressSimulator, SyncSeed

if TYPE_CHECKING:
    from ahorrito_worker.client import AhorritoClient

logger = get_logger(__name__)

MISSING_CONNECTION_MESSAGE = "Cannot sync account: Missing bank connection"
DEFAULT_FAILURE_MESSAGE = "Sync failed"


class BankSyncService:
    """Triggers bank syncs and drives their progress display.

    Usage:
        async with AhorritoClient() as client:
            service = BankSyncService(client, SyncProgressBoard())
            progress = await service.sync_account("acc_1")
            print(progress.status)

    Different accounts may sync concurrently; a second sync for an account
    that is already syncing is rejected.
    """

    def __init__(
        self,
        client: AhorritoClient,
        presenter: ProgressPresenter | None = None,
        config: SyncConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the service.

        Args:
            client: API client for the accounts and bank-sync endpoints
            presenter: Optional presentation layer for progress
            config: Optional sync configuration (uses settings if not provided)
            sleep: Async sleep function (seconds), replaceable in tests
        """
        self._client = client
        self._presenter = presenter
        self._config = config or get_settings().sync
        self._sleep = sleep
        self._active: set[str] = set()

    def is_syncing(self, account_id: str) -> bool:
        """Whether a sync for the account is in flight."""
        return account_id in self._active

    # -------------------------------------------------------------------------
    # Seed
    # -------------------------------------------------------------------------
    async def load_seed(self, account_id: str) -> tuple[SyncSeed, str | None]:
        """Collect the account name, known transaction count and bank ID.

        Falls back to the user's total transaction count when the account
        list is unavailable, and to zero when that fails too.

        Args:
            account_id: Account to look up

        Returns:
            Tuple of (seed, plaid_id or None)
        """
        account_logger = bind_account(account_id)
        try:
            accounts = await self._client.get_accounts()
        except AhorritoClientError as e:
            account_logger.warning("Could not load accounts, using total count: {}", e)
        else:
            entry = accounts.find(account_id)
            if entry is not None:
                seed = SyncSeed(
                    account_name=entry.account.name or "Account",
                    last_known_count=entry.transactions_count,
                )
                return seed, entry.account.plaid_id

        try:
            total = await self._client.get_transaction_count()
        except AhorritoClientError as e:
            account_logger.warning("Could not load transaction count: {}", e)
            total = 0
        return SyncSeed(last_known_count=total), None

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------
    async def _perform_sync(self, plaid_id: str | None) -> int:
        """Run the real bank sync and return the transactions it synced."""
        if not plaid_id:
            raise SyncFailure(MISSING_CONNECTION_MESSAGE)

        logger.debug("Requesting bank sync for {}", plaid_id)
        response = await self._client.sync_bank_account(plaid_id)
        if not response.success:
            raise SyncFailure(response.error or DEFAULT_FAILURE_MESSAGE)
        return response.transactions_for(plaid_id)

    async def sync_account(self, account_id: str, plaid_id: str | None = None) -> SyncProgress:
        """Sync one account while showing simulated progress.

        Failures end in an ERROR snapshot rather than an exception.

        Args:
            account_id: Account to sync
            plaid_id: Bank-aggregator ID (looked up from the account list if omitted)

        Returns:
            Final progress snapshot

        Raises:
            SyncAlreadyRunningError: If the account is already syncing
        """
        if self.is_syncing(account_id):
            raise SyncAlreadyRunningError(f"Sync already running for account {account_id}")

        account_logger = bind_account(account_id)
        self._active.add(account_id)
        try:
            # Everything logged during the sync (simulator included) carries the account
            with LogContext(account=account_id):
                seed, known_plaid_id = await self.load_seed(account_id)
                plaid_id = plaid_id or known_plaid_id

                simulator = SyncProgressSimulator(
                    account_id,
                    seed,
                    self._presenter,
                    self._config,
                    sleep=self._sleep,
                )
                account_logger.info(
                    "Syncing {} (known transactions: {})",
                    seed.account_name,
                    seed.last_known_count,
                )
                progress = await simulator.run(lambda: self._perform_sync(plaid_id))
        finally:
            self._active.discard(account_id)

        if progress.has_error:
            account_logger.warning("Sync ended with error: {}", progress.error)
        return progress
