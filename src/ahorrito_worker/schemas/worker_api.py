"""Pydantic schemas for parsing categorization endpoint responses.

Maps to: POST /api/internal-categorization-worker/run?batch_size=N
(or the Cloudflare-protected equivalent).
"""

from pydantic import BaseModel, ConfigDict, Field


class RateLimitPayload(BaseModel):
    """Quota telemetry block (``rateLimit``) attached by the Cloudflare worker."""

    limit: int = Field(default=0, description="Calls allowed in the window")
    remaining: int = Field(default=0, description="Calls remaining in the window")
    reset_at: int = Field(default=0, alias="resetAt", description="Window reset, epoch ms")

    model_config = ConfigDict(populate_by_name=True)


class RateLimitInfo(BaseModel):
    """Structured retry hint inside an error's ``metrics`` block."""

    reset_in: int | None = Field(default=None, alias="resetIn", description="Seconds to wait")

    model_config = ConfigDict(populate_by_name=True)


class ErrorMetrics(BaseModel):
    """``metrics`` block of an error response."""

    rate_limit_info: RateLimitInfo | None = Field(default=None, alias="rateLimitInfo")

    model_config = ConfigDict(populate_by_name=True)


class BatchRunResponse(BaseModel):
    """Successful batch run.

    ``found_pending`` is what the endpoint picked up this run; older
    deployments only report ``total_pending``.
    """

    successfully_categorized_in_db: int = Field(default=0, ge=0)
    found_pending: int | None = Field(default=None, ge=0)
    total_pending: int | None = Field(default=None, ge=0)
    cached_transactions: int | None = None
    llm_processed: int | None = None
    message: str | None = None
    rate_limit: RateLimitPayload | None = Field(default=None, alias="rateLimit")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def pending(self) -> int:
        """Backlog estimate: found_pending, else total_pending, else 0."""
        return self.found_pending or self.total_pending or 0


class BatchErrorResponse(BaseModel):
    """Error payload (``{"error": ...}``) returned with any HTTP status."""

    error: str
    details: str | None = None
    code: str | None = Field(default=None, description="Structured error code, if provided")
    found_pending: int | None = Field(default=None, ge=0)
    metrics: ErrorMetrics | None = None
    rate_limit: RateLimitPayload | None = Field(default=None, alias="rateLimit")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
