from datetime import datetime

import pytest
from click.testing import CliRunner

from outreach_tracker.storage.backends import MemoryStorage
from outreach_tracker.store import RecordStore


class FakeClock:
    """Callable returning a settable 'now'."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 10, 9, 30, 0))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, clock):
    return RecordStore.open(storage, clock=clock)


@pytest.fixture
def runner():
    return CliRunner()
