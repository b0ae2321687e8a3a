"""Configuration settings for the Ahorrito categorization worker."""

from functools import lru_cache
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TuningConfig(BaseModel):
    """Seed values and policy constants for the adaptive controller.

    Bounds are hard limits: the controller clamps batch size and interval
    into them after every update.
    """

    # Interval bounds
    base_interval_ms: int = Field(
        default=5000,
        ge=0,
        description="Interval the controller recovers toward after a slowdown",
    )
    min_interval_ms: int = Field(
        default=2000,
        ge=0,
        description="Minimum milliseconds between batch calls",
    )
    max_interval_ms: int = Field(
        default=30000,
        ge=1,
        description="Maximum milliseconds between batch calls (30 seconds)",
    )

    # Batch bounds
    initial_batch_size: int = Field(default=5, ge=1, description="Seed batch size")
    min_batch_size: int = Field(default=1, ge=1, description="Smallest batch requested")
    max_batch_size: int = Field(default=30, ge=1, description="Largest batch requested")

    # Step sizes
    batch_increment_step: int = Field(
        default=3,
        ge=1,
        description="Items added to the batch after a success streak",
    )
    batch_decrement_step: int = Field(
        default=1,
        ge=1,
        description="Items removed from the batch after errors (doubled on rate limits)",
    )

    # Streak thresholds
    success_threshold: int = Field(
        default=2,
        ge=1,
        description="Consecutive successes required before growing the batch",
    )
    error_threshold: int = Field(
        default=1,
        ge=1,
        description="Consecutive generic errors required before shrinking the batch",
    )
    high_backlog_threshold: int = Field(
        default=20,
        ge=0,
        description="Pending count above which the growth step is doubled",
    )

    # Multipliers
    backoff_factor: float = Field(
        default=1.5,
        gt=1.0,
        description="Interval multiplier on a rate limit without a retry hint",
    )
    recovery_factor: float = Field(
        default=0.75,
        gt=0.0,
        lt=1.0,
        description="Interval multiplier on success while above the base interval",
    )
    transport_backoff_factor: float = Field(
        default=1.2,
        gt=1.0,
        description="Interval multiplier when the endpoint cannot be reached",
    )
    quota_throttle_factor: float = Field(
        default=1.2,
        ge=1.0,
        description="Interval multiplier when quota telemetry runs low",
    )
    quota_warning_ratio: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="remaining/limit ratio below which to throttle proactively",
    )
    idle_interval_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Idle polls sleep at least base_interval_ms times this",
    )

    # Safety margins
    retry_safety_margin_ms: int = Field(
        default=1000,
        ge=0,
        description="Added to server retry hints so retries never land on the reset edge",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> Self:
        if self.min_batch_size > self.max_batch_size:
            raise ValueError("min_batch_size must not exceed max_batch_size")
        if self.min_interval_ms > self.max_interval_ms:
            raise ValueError("min_interval_ms must not exceed max_interval_ms")
        if not self.min_batch_size <= self.initial_batch_size <= self.max_batch_size:
            raise ValueError("initial_batch_size must lie within the batch bounds")
        if not self.min_interval_ms <= self.base_interval_ms <= self.max_interval_ms:
            raise ValueError("base_interval_ms must lie within the interval bounds")
        return self


class WorkerSettings(BaseModel):
    """Configuration for the background categorization worker loop."""

    use_cloudflare: bool = Field(
        default=False,
        description="Call the rate-limited Cloudflare endpoint instead of the local one",
    )
    local_endpoint: str = Field(
        default="http://localhost:3000/api/internal-categorization-worker/run",
        description="Direct categorization endpoint",
    )
    cloudflare_endpoint: str = Field(
        default=(
            "https://ahorrito-categorization-worker.your-account.workers.dev"
            "/api/categorization-worker/run"
        ),
        description="Cloudflare-protected categorization endpoint",
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="HTTP timeout for one batch call (timeouts count as transport errors)",
    )

    # Diagnostics
    diagnostics_every_runs: int = Field(
        default=10,
        ge=1,
        description="Emit a performance summary every N runs",
    )
    diagnostics_every_items: int = Field(
        default=20,
        ge=1,
        description="Emit a performance summary every M processed items",
    )
    min_sample_for_best: int = Field(
        default=10,
        ge=0,
        description="Processed items required before best throughput is tracked",
    )

    # Alerting
    alert_after_consecutive_errors: int = Field(
        default=10,
        ge=1,
        description="Fire failure-streak callbacks after this many consecutive errors",
    )

    @property
    def endpoint(self) -> str:
        """Endpoint selected by use_cloudflare."""
        return self.cloudflare_endpoint if self.use_cloudflare else self.local_endpoint


class SyncConfig(BaseModel):
    """Configuration for the bank-sync progress simulator.

    Timings and checkpoints shape what the user sees while the real
    sync call is in flight. Percentages are fractions of the estimate.
    """

    # Estimate
    buffer_ratio: float = Field(
        default=0.2,
        ge=0.0,
        description="Expected new transactions as a fraction of the known count",
    )
    min_buffer: int = Field(default=20, ge=0, description="Floor for the new-transaction buffer")
    min_total: int = Field(default=50, ge=1, description="Floor for the estimated total")

    # Phase timings
    connect_delay_ms: int = Field(default=800, ge=0, description="Time spent in CONNECTING")
    fetch_delay_ms: int = Field(default=600, ge=0, description="Time spent in FETCHING")
    tick_interval_ms: int = Field(default=1500, ge=1, description="SYNCING tick period")
    processing_delay_ms: int = Field(default=500, ge=0, description="Time spent in PROCESSING")
    dismiss_delay_ms: int = Field(
        default=4500,
        ge=0,
        description="Auto-dismiss delay after COMPLETE or ERROR",
    )

    # Checkpoints
    fetching_checkpoint: float = Field(default=0.15, ge=0.0, lt=1.0)
    syncing_checkpoint: float = Field(default=0.35, ge=0.0, lt=1.0)
    tick_increment: float = Field(default=0.03, gt=0.0, lt=1.0)
    pre_completion_ceiling: float = Field(
        default=0.85,
        gt=0.0,
        lt=1.0,
        description="Displayed progress never reaches this before the real result",
    )
    processing_checkpoint: float = Field(default=0.9, ge=0.0, le=1.0)


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Ahorrito API
    # --------------------------------------------------------------------------
    api_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the Ahorrito web API (accounts, bank sync)",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Adaptive Worker
    # --------------------------------------------------------------------------
    tuning: TuningConfig = Field(
        default_factory=TuningConfig,
        description="Adaptive batch/interval controller configuration",
    )
    worker: WorkerSettings = Field(
        default_factory=WorkerSettings,
        description="Categorization worker loop configuration",
    )

    # --------------------------------------------------------------------------
    # Bank Sync
    # --------------------------------------------------------------------------
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Bank-sync progress simulator configuration",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
