from datetime import datetime, timedelta, timezone

import pytest

from database import SQLBackend
from storage import KeyValueBackend, MemoryStorage
from store import ListingStore
from ui_helpers import OUTPUT_MODE_ENV


class TickingClock:
    """Returns a moment one second later on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        moment = self.current
        self.current = self.current + self.step
        return moment


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def frozen_clock():
    return TickingClock(step=timedelta(0))


def make_backend(kind, tmp_path):
    if kind == "local":
        return KeyValueBackend(MemoryStorage())
    return SQLBackend(str(tmp_path / "market.db"))


@pytest.fixture(params=["local", "sql"])
def backend(request, tmp_path):
    # Every store test runs against both adapters
    backend = make_backend(request.param, tmp_path)
    yield backend
    backend.close()


@pytest.fixture
def store(backend, clock):
    return ListingStore(backend, clock=clock)


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    monkeypatch.delenv(OUTPUT_MODE_ENV, raising=False)


@pytest.fixture
def valid_fields():
    return {
        "title": "X",
        "course_code": "CS101",
        "price": "10",
        "condition": "Good",
        "material_type": "Textbook",
        "genre": "STEM",
    }
