"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import pytest
from loguru import logger

from stepkernel.evolution.clock import Clock
from stepkernel.evolution.decay import DecayEngine
from stepkernel.evolution.history import HistoryEngine


# ---------------------------------------------------------------------------
# Fake clock (no wall-clock dependency)
# ---------------------------------------------------------------------------

class FakeClock(Clock):
    """Minimal stand-in for Clock pinned to a settable UTC moment."""

    def __init__(self, today: date = date(2026, 2, 15)):
        self.tz_name = "UTC"
        self.tz = timezone.utc
        self._now = datetime.combine(today, time(12, 0), tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, days: int = 1) -> None:
        self._now += timedelta(days=days)


TODAY = date(2026, 2, 15)


def days_ago(n: int, today: date = TODAY) -> date:
    return today - timedelta(days=n)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock():
    return FakeClock(TODAY)


@pytest.fixture()
def history(clock):
    return HistoryEngine(clock, default_goal=7500, retention_days=30)


@pytest.fixture()
def decay(history):
    engine = DecayEngine(history)
    yield engine
    engine.close()


@pytest.fixture()
def log_messages():
    """Capture loguru messages (text plus bound extras) for assertions."""
    messages: list[dict] = []

    def _sink(message):
        record = message.record
        messages.append({"level": record["level"].name, "message": record["message"], "extra": dict(record["extra"])})

    handler_id = logger.add(_sink, level="DEBUG")
    yield messages
    logger.remove(handler_id)
