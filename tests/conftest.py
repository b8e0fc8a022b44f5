import os
import sys
from datetime import date, datetime

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from patient_portal.services.mock_store import (
    AppointmentRepository,
    DirectoryRepository,
    MockDataStore,
    ScheduleRepository,
    reset_mock_store,
)

# Monday 19 October 2026, before the first clinic opens.
NOW = datetime(2026, 10, 19, 8, 0)
TODAY = NOW.date()


class MockLatencyClient:
    """Client stub that records simulate_latency calls."""

    def __init__(self) -> None:
        self.use_mock_data = True
        self.latency_called = False

    async def simulate_latency(self) -> None:
        self.latency_called = True


@pytest.fixture(autouse=True)
def _reset_store() -> None:
    reset_mock_store()
    yield
    reset_mock_store()


@pytest.fixture
def store() -> MockDataStore:
    clock = lambda: NOW  # noqa: E731
    directory = DirectoryRepository()
    appointments = AppointmentRepository(directory, clock=clock)
    schedules = ScheduleRepository(directory, appointments, clock=clock)
    return MockDataStore(directory=directory, appointments=appointments, schedules=schedules)


@pytest.fixture
def client() -> MockLatencyClient:
    return MockLatencyClient()


@pytest.fixture
def today() -> date:
    return TODAY
