"""
Job Engine Test Fixtures.

Base fixtures:
  - Empty job store on a temporary SQLite file
  - Mocked clock at a fixed epoch second
  - In-memory scheduling gateway with per-instant capacity control
  - Fixed seed source
"""

import itertools
import threading
import pytest
from pathlib import Path
from typing import Callable, Optional

from src.engine import (
    CancellationFailedError,
    CapacityProbe,
    JobEngine,
    JobStore,
    RandomSeedSource,
    ScheduleRef,
    SchedulingFailedError,
    SchedulingGateway,
)


FIXED_NOW = 1000
TRUSTED_SCHEDULER = "scheduler"
ENGINE_TARGET = "http://engine.test/jobs"
RESOURCE_COST = 200_000
FIXED_SEED = 0xC0FFEE


class MockClock:
    """
    Mock clock for deterministic time control.

    Starts at a fixed epoch second and advances only when ticked.
    """

    def __init__(self, start: int = FIXED_NOW):
        self._current = start

    def __call__(self) -> int:
        return self._current

    def tick(self, seconds: int = 1) -> None:
        self._current += seconds

    def set(self, now: int) -> None:
        self._current = now


class FixedSeedSource(RandomSeedSource):
    """Seed source returning a constant; counts draws."""

    def __init__(self, seed: int = FIXED_SEED):
        self.seed = seed
        self.calls = 0

    def get_seed(self) -> int:
        self.calls += 1
        return self.seed


class FakeGateway(SchedulingGateway):
    """
    In-memory scheduling gateway.

    Capacity is open everywhere unless an instant is marked full, or a
    capacity predicate is installed. Records every call for assertions.
    """

    def __init__(self):
        self.full_instants: set[int] = set()
        self.capacity_fn: Optional[Callable[[int, int], bool]] = None
        self.capacity_queries: list[int] = []
        self.scheduled: dict[str, dict] = {}
        self.schedule_calls: list[dict] = []
        self.cancelled: list[str] = []
        self.fail_schedule = False
        self.fail_cancel = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def has_capacity(self, instant: int, resource_cost: int) -> bool:
        with self._lock:
            self.capacity_queries.append(instant)
        if self.capacity_fn is not None:
            return self.capacity_fn(instant, resource_cost)
        return instant not in self.full_instants

    def schedule(self, target: str, instant: int, resource_cost: int, payload: dict) -> ScheduleRef:
        call = {
            "target": target,
            "instant": instant,
            "cost": resource_cost,
            "payload": payload,
        }
        with self._lock:
            self.schedule_calls.append(call)
            if self.fail_schedule:
                raise SchedulingFailedError(f"rejected at {instant}", instant=instant)
            ref = f"sched-{next(self._ids)}"
            self.scheduled[ref] = call
        return ScheduleRef(ref)

    def cancel(self, ref: ScheduleRef) -> None:
        with self._lock:
            if self.fail_cancel or ref.value not in self.scheduled:
                raise CancellationFailedError(ref.value, "unknown or already fired")
            del self.scheduled[ref.value]
            self.cancelled.append(ref.value)

    def fire(self, ref: ScheduleRef) -> dict:
        """Consume a registration the way the backend does when it is due."""
        with self._lock:
            return self.scheduled.pop(ref.value)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> str:
    """Temporary database file path."""
    return str(tmp_path / "jobs.db")


@pytest.fixture
def store(temp_db_path: str) -> JobStore:
    """Fresh JobStore with an empty database."""
    return JobStore(temp_db_path)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def seed_source() -> FixedSeedSource:
    return FixedSeedSource()


@pytest.fixture
def probe(gateway: FakeGateway, seed_source: FixedSeedSource) -> CapacityProbe:
    return CapacityProbe(gateway, seed_source)


@pytest.fixture
def engine(
    store: JobStore,
    gateway: FakeGateway,
    probe: CapacityProbe,
    mock_clock: MockClock,
) -> JobEngine:
    """JobEngine wired to the fake gateway and mock clock."""
    return JobEngine(
        store=store,
        gateway=gateway,
        probe=probe,
        trusted_scheduler_id=TRUSTED_SCHEDULER,
        callback_url=ENGINE_TARGET,
        resource_cost=RESOURCE_COST,
        max_probe_attempts=8,
        clock=mock_clock,
    )


# =============================================================================
# Helpers
# =============================================================================


def fire_pending(engine: JobEngine, gateway: FakeGateway, job_id: int):
    """
    Deliver the job's pending registration like the backend would:
    consume it at the gateway, then trigger as the trusted scheduler.
    """
    job = engine.store.get_job(job_id)
    assert job.pending_schedule_ref is not None, f"Job {job_id} has nothing pending"
    call = gateway.fire(job.pending_schedule_ref)
    assert call["payload"] == {"job_id": job_id}
    return engine.trigger(job_id, TRUSTED_SCHEDULER)
