"""Shared test fixtures and configuration for the test suite."""

import locale
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Generator, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to the path for imports
sys.path.append(str(Path(__file__).parent.parent))

from taskflow.config import Settings
from taskflow.main import create_app
from taskflow.models.task import Task
from taskflow.services.task_store import TaskStore

# Wednesday afternoon, local time
REFERENCE_TIME = datetime(2026, 3, 18, 15, 30).astimezone()


class RecordingGateway:
    """In-memory persistence gateway that records every snapshot it receives."""

    def __init__(self, tasks: Optional[List[Task]] = None):
        self.saved: List[List[Task]] = []
        self._tasks = list(tasks or [])

    def load(self) -> List[Task]:
        return list(self._tasks)

    def save(self, tasks) -> None:
        self.saved.append(list(tasks))


def ticking_clock(start: datetime = REFERENCE_TIME, step: timedelta = timedelta(minutes=1)) -> Iterator[datetime]:
    """Yield strictly increasing timestamps."""
    current = start
    while True:
        yield current
        current += step


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with a temporary storage file."""
    return Settings(
        storage_path=tmp_path / "data" / "tasks.json",
        save_delay=0.0,
        reminder_interval=3600,
        log_level="DEBUG",
        environment="test",
    )


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def task_store(gateway) -> TaskStore:
    """Create a task store wired to a recording gateway."""
    return TaskStore(persistence=gateway)


@pytest.fixture
def clock(monkeypatch) -> Iterator[datetime]:
    """Make the task store hand out increasing creation/completion times."""
    ticks = ticking_clock()
    monkeypatch.setattr("taskflow.services.task_store.local_now", lambda: next(ticks))
    monkeypatch.setattr("taskflow.models.task.local_now", lambda: next(ticks))
    return ticks


@pytest.fixture
def central_european_time(monkeypatch):
    """Use CET/CEST as the local timezone (DST starts on the last Sunday of March)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "CET-1CEST,M3.5.0,M10.5.0/3")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def client(test_settings) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    app = create_app(test_settings)
    collation = locale.setlocale(locale.LC_COLLATE)
    with TestClient(app) as test_client:
        yield test_client
    locale.setlocale(locale.LC_COLLATE, collation)


# Test data fixtures
@pytest.fixture
def sample_task_data():
    """Sample task payload for the API."""
    return {
        "text": "Review the quarterly report",
        "priority": "high",
        "category": "work",
        "tags": "finance, q3",
    }
