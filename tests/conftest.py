from datetime import datetime, timedelta, timezone

import pytest

from phrasal.domain.models import DueItem, Phrase, ScheduleState
from phrasal.infrastructure.adapters.sql_store import SqlStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic durations."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_due_item(
    phrase_id: str,
    text: str,
    translation: str | None = None,
    schedule: ScheduleState | None = None,
    added_at: datetime | None = None,
) -> DueItem:
    return DueItem(
        phrase=Phrase(id=phrase_id, text=text, translation=translation, added_at=added_at),
        schedule=schedule,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def due_item():
    """Factory for DueItem fixtures."""
    return make_due_item


@pytest.fixture
def store():
    """SqlStore on a fresh in-memory SQLite database."""
    s = SqlStore("sqlite://")
    s.init_db()
    yield s
    s.close()


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    return home
