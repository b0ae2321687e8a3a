"""Tests for configuration settings."""

import pytest

from ahorrito_worker.config import (
    Settings,
    SyncConfig,
    TuningConfig,
    WorkerSettings,
    get_settings,
)


class TestSettings:
    """Tests for Settings class."""

    def test_settings_defaults(self) -> None:
        """Test default values are correct."""
        settings = Settings(_env_file=None)

        assert settings.api_base_url == "http://localhost:3000"
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.logging.log_file is None

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variables override defaults."""
        monkeypatch.setenv("API_BASE_URL", "https://ahorrito.example")
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = Settings(_env_file=None)

        assert settings.api_base_url == "https://ahorrito.example"
        assert settings.environment == "production"
        assert settings.log_level == "DEBUG"

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Nested sections are set with a double-underscore delimiter."""
        monkeypatch.setenv("TUNING__MAX_BATCH_SIZE", "50")
        monkeypatch.setenv("WORKER__USE_CLOUDFLARE", "true")
        monkeypatch.setenv("SYNC__DISMISS_DELAY_MS", "1000")

        settings = Settings(_env_file=None)

        assert settings.tuning.max_batch_size == 50
        assert settings.worker.use_cloudflare is True
        assert settings.worker.endpoint == settings.worker.cloudflare_endpoint
        assert settings.sync.dismiss_delay_ms == 1000

    def test_settings_environment_validation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "invalid")

        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_settings_log_level_validation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "INVALID")

        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_settings_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("api_base_url", "http://lower.example")

        settings = Settings(_env_file=None)

        assert settings.api_base_url == "http://lower.example"


class TestTuningConfig:
    """Tests for controller tuning defaults and validation."""

    def test_defaults(self) -> None:
        config = TuningConfig()

        assert config.base_interval_ms == 5000
        assert (config.min_interval_ms, config.max_interval_ms) == (2000, 30000)
        assert config.initial_batch_size == 5
        assert (config.min_batch_size, config.max_batch_size) == (1, 30)
        assert config.batch_increment_step == 3
        assert config.batch_decrement_step == 1
        assert config.success_threshold == 2
        assert config.error_threshold == 1
        assert config.high_backlog_threshold == 20
        assert config.backoff_factor == 1.5
        assert config.recovery_factor == 0.75
        assert config.retry_safety_margin_ms == 1000

    def test_min_above_max_rejected(self) -> None:
        with pytest.raises(ValueError):
            TuningConfig(min_interval_ms=40000)

    def test_base_outside_bounds_rejected(self) -> None:
        with pytest.raises(ValueError):
            TuningConfig(base_interval_ms=1000)

    def test_recovery_factor_must_shrink(self) -> None:
        with pytest.raises(ValueError):
            TuningConfig(recovery_factor=1.2)


class TestWorkerSettings:
    """Tests for worker loop settings."""

    def test_local_endpoint_default(self) -> None:
        worker = WorkerSettings()

        assert worker.endpoint == "http://localhost:3000/api/internal-categorization-worker/run"
        assert worker.request_timeout_seconds == 120.0
        assert worker.diagnostics_every_runs == 10
        assert worker.diagnostics_every_items == 20

    def test_cloudflare_switch(self) -> None:
        worker = WorkerSettings(use_cloudflare=True)

        assert worker.endpoint == worker.cloudflare_endpoint


class TestSyncConfig:
    def test_defaults(self) -> None:
        config = SyncConfig()

        assert config.pre_completion_ceiling == 0.85
        assert config.dismiss_delay_ms == 4500
        assert config.tick_interval_ms == 1500


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        get_settings.cache_clear()

        assert isinstance(get_settings(), Settings)

    def test_get_settings_cached(self) -> None:
        get_settings.cache_clear()

        assert get_settings() is get_settings()
