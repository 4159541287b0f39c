from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from knbn.engine import BoardEngine
from knbn.model import Board, new_board


class FrozenClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def iso(self) -> str:
        return self.now.isoformat()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(clock: FrozenClock) -> BoardEngine:
    return BoardEngine(clock)


@pytest.fixture
def board(clock: FrozenClock) -> Board:
    return new_board(clock=clock)
