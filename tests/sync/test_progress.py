"""Tests for SyncProgressSimulator.

Timings are shrunk to zero and sleeps replaced by a bare yield to the
event loop, so the ticker advances as fast as the loop spins while the
real call is held open by an asyncio.Event.
"""

import asyncio
import math

import pytest

from ahorrito_worker.config import SyncConfig
from ahorrito_worker.exceptions import SyncFailure
from ahorrito_worker.sync.progress import (
    SyncPhase,
    SyncProgress,
    SyncProgressSimulator,
    SyncSeed,
    estimate_total,
)

PHASE_ORDER = [
    SyncPhase.CONNECTING,
    SyncPhase.FETCHING,
    SyncPhase.SYNCING,
    SyncPhase.PROCESSING,
    SyncPhase.COMPLETE,
]


async def yield_sleep(seconds: float) -> None:
    """Sleep replacement that only yields control."""
    await asyncio.sleep(0)


async def spin(times: int = 200) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


class RecordingPresenter:
    """Presenter that records every call."""

    def __init__(self) -> None:
        self.started: list[SyncProgress] = []
        self.updates: list[SyncProgress] = []
        self.dismissed: list[str] = []

    def start(self, account_id: str, seed: SyncProgress) -> None:
        self.started.append(seed)

    def update(self, account_id: str, progress: SyncProgress) -> None:
        self.updates.append(progress)

    def dismiss(self, account_id: str) -> None:
        self.dismissed.append(account_id)


def held_call(gate: asyncio.Event, result: int = 0, error: Exception | None = None):
    """Sync call that resolves once the gate opens."""

    async def call() -> int:
        await gate.wait()
        if error is not None:
            raise error
        return result

    return call


def make_simulator(
    config: SyncConfig,
    presenter: RecordingPresenter | None = None,
    last_known_count: int = 0,
    account_id: str = "acc_1",
) -> SyncProgressSimulator:
    return SyncProgressSimulator(
        account_id,
        SyncSeed("Checking", last_known_count),
        presenter,
        config,
        sleep=yield_sleep,
    )


class TestEstimateTotal:
    """Tests for the up-front estimate."""

    @pytest.mark.parametrize(
        ("count", "expected"),
        [
            (0, 50),
            (10, 50),
            (30, 50),
            (100, 120),
            (500, 600),
            (101, 122),
        ],
    )
    def test_estimate(self, count: int, expected: int) -> None:
        """Known count plus a buffer of max(20, 20%), at least 50."""
        assert estimate_total(count, SyncConfig()) == expected

    def test_negative_count_treated_as_zero(self) -> None:
        assert estimate_total(-5, SyncConfig()) == 50


class TestSimulatedProgress:
    """Tests for the pre-resolution animation."""

    @pytest.mark.asyncio
    async def test_ceiling_before_resolution(self, fast_sync_config: SyncConfig) -> None:
        """Displayed progress stops below 85% of the estimate while waiting."""
        simulator = make_simulator(fast_sync_config, last_known_count=100)
        gate = asyncio.Event()

        task = asyncio.create_task(simulator.run(held_call(gate, 130)))
        await spin()

        estimate = simulator.progress.estimated_total
        assert simulator.progress.displayed_current == simulator.ceiling
        assert simulator.progress.displayed_current < math.ceil(estimate * 0.85)
        assert simulator.phase == SyncPhase.SYNCING

        gate.set()
        await task

    @pytest.mark.asyncio
    async def test_phase_checkpoints(self, fast_sync_config: SyncConfig) -> None:
        """Fetching and syncing start at their checkpoints of the estimate."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=100)
        gate = asyncio.Event()

        task = asyncio.create_task(simulator.run(held_call(gate, 130)))
        await spin()
        gate.set()
        await task

        first_by_phase: dict[SyncPhase, int] = {}
        for update in presenter.updates:
            first_by_phase.setdefault(update.phase, update.displayed_current)

        assert first_by_phase[SyncPhase.FETCHING] == 18  # floor(120 * 0.15)
        assert first_by_phase[SyncPhase.SYNCING] == 42  # floor(120 * 0.35)

    @pytest.mark.asyncio
    async def test_start_snapshot(self, fast_sync_config: SyncConfig) -> None:
        """The presenter sees the seed snapshot first."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=100)

        async def call() -> int:
            return 10

        await simulator.run(call)

        assert len(presenter.started) == 1
        assert presenter.started[0].phase == SyncPhase.CONNECTING
        assert presenter.started[0].displayed_current == 0
        assert presenter.started[0].estimated_total == 120


class TestCompletion:
    """Tests for reconciliation with the real result."""

    @pytest.mark.asyncio
    async def test_actual_exceeds_estimate(self, fast_sync_config: SyncConfig) -> None:
        """Completion shows the actual count when it beats the estimate."""
        simulator = make_simulator(fast_sync_config, last_known_count=0)
        gate = asyncio.Event()

        task = asyncio.create_task(simulator.run(held_call(gate, 500)))
        await spin()
        gate.set()
        progress = await task

        assert progress.phase == SyncPhase.COMPLETE
        assert progress.final_total == 500
        assert progress.displayed_current == 500
        assert progress.actual_count == 500
        assert progress.status == "Successfully synced 500 transactions"

    @pytest.mark.asyncio
    async def test_actual_below_estimate(self, fast_sync_config: SyncConfig) -> None:
        """A smaller actual count never pulls the counter back."""
        simulator = make_simulator(fast_sync_config, last_known_count=100)
        gate = asyncio.Event()

        task = asyncio.create_task(simulator.run(held_call(gate, 10)))
        await spin()
        gate.set()
        progress = await task

        assert progress.phase == SyncPhase.COMPLETE
        assert progress.final_total == 120
        assert progress.displayed_current == 120
        assert progress.actual_count == 10

    @pytest.mark.asyncio
    async def test_processing_before_complete(self, fast_sync_config: SyncConfig) -> None:
        """PROCESSING at 90% of the final total precedes COMPLETE."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=100)

        async def call() -> int:
            return 200

        await simulator.run(call)

        phases = [update.phase for update in presenter.updates]
        processing = [u for u in presenter.updates if u.phase == SyncPhase.PROCESSING]
        assert phases[-1] == SyncPhase.COMPLETE
        assert processing[0].displayed_current == 180

    @pytest.mark.asyncio
    async def test_displayed_never_decreases(self, fast_sync_config: SyncConfig) -> None:
        """Every update is at least the previous one, and phases only move forward."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=300)
        gate = asyncio.Event()

        task = asyncio.create_task(simulator.run(held_call(gate, 50)))
        await spin(25)
        gate.set()
        await task

        values = [update.displayed_current for update in presenter.updates]
        assert values == sorted(values)

        indexes = [PHASE_ORDER.index(update.phase) for update in presenter.updates]
        assert indexes == sorted(indexes)

    @pytest.mark.asyncio
    async def test_ticker_cancelled_on_resolution(self, fast_sync_config: SyncConfig) -> None:
        """No simulated updates arrive after the real result."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=1000)

        async def call() -> int:
            return 1500

        await simulator.run(call)
        count_after_run = len(presenter.updates)
        await spin(50)

        assert presenter.updates[-1].phase == SyncPhase.COMPLETE
        assert all(
            update.phase == SyncPhase.COMPLETE for update in presenter.updates[count_after_run:]
        )
        assert simulator._ticker is not None and simulator._ticker.done()


class TestFailure:
    """Tests for rejected and throwing syncs."""

    @pytest.mark.asyncio
    async def test_sync_failure_freezes_progress(self, fast_sync_config: SyncConfig) -> None:
        """ERROR keeps the displayed count and surfaces the message once."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=100)
        gate = asyncio.Event()

        task = asyncio.create_task(
            simulator.run(held_call(gate, error=SyncFailure("Bank connection expired")))
        )
        await spin()
        frozen = simulator.progress.displayed_current
        gate.set()
        progress = await task

        assert progress.phase == SyncPhase.ERROR
        assert progress.displayed_current == frozen
        assert progress.status == "Bank connection expired"
        errors = [u for u in presenter.updates if u.phase == SyncPhase.ERROR]
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, fast_sync_config: SyncConfig) -> None:
        """Any exception from the call ends in ERROR without propagating."""
        simulator = make_simulator(fast_sync_config)

        async def call() -> int:
            raise RuntimeError("socket closed")

        progress = await simulator.run(call)

        assert progress.has_error
        assert progress.error == "socket closed"

    @pytest.mark.asyncio
    async def test_empty_message_gets_default(self, fast_sync_config: SyncConfig) -> None:
        simulator = make_simulator(fast_sync_config)

        async def call() -> int:
            raise SyncFailure()

        progress = await simulator.run(call)

        assert progress.error == "Failed to sync transactions"


class TestDismissal:
    """Tests for auto and manual dismissal."""

    @pytest.mark.asyncio
    async def test_auto_dismiss_after_completion(self, fast_sync_config: SyncConfig) -> None:
        """The display is dismissed after the terminal phase."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter)

        async def call() -> int:
            return 5

        await simulator.run(call)
        await asyncio.wait_for(simulator.wait_dismissed(), timeout=1)

        assert presenter.dismissed == ["acc_1"]
        assert simulator.is_dismissed

    @pytest.mark.asyncio
    async def test_auto_dismiss_after_error(self, fast_sync_config: SyncConfig) -> None:
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter)

        async def call() -> int:
            raise SyncFailure("nope")

        await simulator.run(call)
        await asyncio.wait_for(simulator.wait_dismissed(), timeout=1)

        assert presenter.dismissed == ["acc_1"]

    @pytest.mark.asyncio
    async def test_manual_dismiss_keeps_call_running(self, fast_sync_config: SyncConfig) -> None:
        """Dismissing hides updates but the real call still completes."""
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter, last_known_count=100)
        gate = asyncio.Event()
        finished = []

        async def call() -> int:
            await gate.wait()
            finished.append(True)
            return 42

        task = asyncio.create_task(simulator.run(call))
        await spin(10)
        simulator.dismiss()
        updates_at_dismiss = len(presenter.updates)
        gate.set()
        progress = await task

        assert finished == [True]
        assert progress.phase == SyncPhase.COMPLETE
        assert len(presenter.updates) == updates_at_dismiss
        assert presenter.dismissed == ["acc_1"]

    @pytest.mark.asyncio
    async def test_dismiss_idempotent(self, fast_sync_config: SyncConfig) -> None:
        presenter = RecordingPresenter()
        simulator = make_simulator(fast_sync_config, presenter)

        simulator.dismiss()
        simulator.dismiss()

        assert presenter.dismissed == ["acc_1"]


class TestIndependence:
    """Concurrent simulators share nothing."""

    @pytest.mark.asyncio
    async def test_concurrent_accounts(self, fast_sync_config: SyncConfig) -> None:
        """Two accounts syncing at once reach their own outcomes."""
        first = make_simulator(fast_sync_config, account_id="acc_1", last_known_count=100)
        second = make_simulator(fast_sync_config, account_id="acc_2", last_known_count=0)

        async def ok() -> int:
            await asyncio.sleep(0)
            return 300

        async def fail() -> int:
            await asyncio.sleep(0)
            raise SyncFailure("expired")

        results = await asyncio.gather(first.run(ok), second.run(fail))

        assert results[0].account_id == "acc_1"
        assert results[0].phase == SyncPhase.COMPLETE
        assert results[0].displayed_current == 300
        assert results[1].account_id == "acc_2"
        assert results[1].phase == SyncPhase.ERROR
        assert results[1].estimated_total == 50
