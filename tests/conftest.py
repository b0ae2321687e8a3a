"""Pytest configuration and shared fixtures.

Usage Guide:
- For controller/worker tests: use the tuning_config and controller fixtures
- For endpoint payloads: import dicts from tests.fixtures
- For simulator tests: use fast_sync_config and fast_sleep
"""

from collections.abc import Generator

import pytest

from ahorrito_worker.config import SyncConfig, TuningConfig, WorkerSettings, get_settings
from ahorrito_worker.pacing import AdaptiveController


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    """Keep cached settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# -----------------------------------------------------------------------------
# Adaptive Worker Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def tuning_config() -> TuningConfig:
    """Default tuning values, independent of the environment."""
    return TuningConfig()


@pytest.fixture
def controller(tuning_config: TuningConfig) -> AdaptiveController:
    return AdaptiveController(tuning_config)


@pytest.fixture
def worker_settings() -> WorkerSettings:
    return WorkerSettings()


# -----------------------------------------------------------------------------
# Sync Simulator Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def fast_sync_config() -> SyncConfig:
    """Default checkpoints with near-zero timings."""
    return SyncConfig(
        connect_delay_ms=0,
        fetch_delay_ms=0,
        tick_interval_ms=1,
        processing_delay_ms=0,
        dismiss_delay_ms=0,
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
