"""Pydantic schemas for the accounts and bank-sync endpoints.

Maps to:
- GET /api/accounts
- GET /api/transactions/count
- POST /api/truelayer/sync
"""

from pydantic import BaseModel, ConfigDict, Field


class AccountRef(BaseModel):
    """Account object as embedded in list and sync responses."""

    id: str | None = Field(default=None, description="Account ID")
    name: str | None = Field(default=None, description="Display name")
    plaid_id: str | None = Field(
        default=None,
        alias="plaidId",
        description="Bank-aggregator account ID (TrueLayer)",
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AccountEntry(BaseModel):
    """One row of GET /api/accounts."""

    account: AccountRef
    transactions_count: int = Field(default=0, ge=0, alias="transactionsCount")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AccountsResponse(BaseModel):
    """GET /api/accounts response."""

    success: bool = False
    accounts: list[AccountEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def find(self, account_id: str) -> AccountEntry | None:
        """Find an entry by account ID."""
        for entry in self.accounts:
            if entry.account.id == account_id:
                return entry
        return None


class TransactionCountResponse(BaseModel):
    """GET /api/transactions/count response."""

    total: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="ignore")


class SyncedAccount(BaseModel):
    """Per-account result of a bank sync."""

    account: AccountRef
    transactions: int = Field(default=0, ge=0, description="Transactions synced")

    model_config = ConfigDict(extra="ignore")


class SyncResponse(BaseModel):
    """POST /api/truelayer/sync response."""

    success: bool = False
    accounts: list[SyncedAccount] = Field(default_factory=list)
    error: str | None = None

    model_config = ConfigDict(extra="ignore")

    def transactions_for(self, plaid_id: str) -> int:
        """Transactions synced for the given bank account (0 if absent)."""
        for result in self.accounts:
            if result.account.plaid_id == plaid_id:
                return result.transactions
        return 0
