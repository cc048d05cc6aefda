"""History engine — the bounded, day-indexed ledger.

Holds at most `retention_days` DailyRecords, unique by day key and ordered
ascending by date. Missing days are never errors: lookups return None and
window views synthesize placeholders.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable

from loguru import logger

from stepkernel.config import settings
from stepkernel.evolution.clock import Clock, day_key, parse_day_key
from stepkernel.evolution.models import (
    DailyRecord,
    DayView,
    GoalStatus,
    HistoryEvent,
    HistorySnapshot,
)

HistoryListener = Callable[[HistoryEvent], None]

WEEK_DAYS = 7


def _clamp_steps(steps: int, key: str) -> int:
    value = int(steps)
    if value < 0:
        logger.warning("Negative step count clamped to 0", day_key=key, steps=value)
        return 0
    return value


class HistoryEngine:
    """Owns the day ledger and answers temporal queries against the clock's today."""

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        default_goal: int | None = None,
        retention_days: int | None = None,
    ):
        self.clock = clock or Clock()
        self.default_goal = default_goal or settings.default_daily_goal
        self.retention_days = retention_days or settings.history_retention_days
        self.last_updated: datetime = datetime.now(timezone.utc)
        self.last_processed_day: date = self.clock.today()
        self._records: dict[str, DailyRecord] = {}
        self._listeners: list[HistoryListener] = []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        """Register `listener` for every history change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: HistoryEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _resolve_goal(self, goal: int | None, existing: DailyRecord | None) -> int:
        if goal is None:
            return existing.goal if existing is not None else self.default_goal
        if goal <= 0:
            logger.warning("Invalid goal replaced with default", goal=goal, default_goal=self.default_goal)
            return self.default_goal
        return int(goal)

    def _reindex(self) -> None:
        """Sort ascending and evict the oldest records beyond the retention window."""
        ordered = sorted(self._records.values(), key=lambda r: r.day)
        overflow = len(ordered) - self.retention_days
        if overflow > 0:
            logger.debug(
                "Evicted records beyond retention window",
                evicted=[r.day_key for r in ordered[:overflow]],
                retention_days=self.retention_days,
            )
            ordered = ordered[overflow:]
        self._records = {r.day_key: r for r in ordered}
        self.last_updated = datetime.now(timezone.utc)

    def upsert_day(self, key: str | date, steps: int, goal: int | None = None) -> DailyRecord:
        """Insert or overwrite the record for `key` (last write wins on steps).

        Without an explicit goal the day keeps its stored goal, or gets the default.
        """
        day = parse_day_key(key)
        k = day_key(day)
        record = DailyRecord(
            day=day,
            steps=_clamp_steps(steps, k),
            goal=self._resolve_goal(goal, self._records.get(k)),
        )
        self._records[k] = record
        self._reindex()
        if k not in self._records:
            logger.debug("Day older than retention window dropped", day_key=k, retention_days=self.retention_days)
            return record
        logger.debug("Recorded day", day_key=k, steps=record.steps, goal=record.goal, goal_met=record.goal_met)
        self._emit(HistoryEvent(kind="day_updated", day_key=k, record=record))
        return record

    def update_today(self, steps: int) -> DailyRecord:
        """Set today's total-so-far, keeping today's goal if one is stored."""
        today = self.clock.today()
        existing = self._records.get(day_key(today))
        goal = existing.goal if existing is not None else self.default_goal
        return self.upsert_day(today, steps, goal)

    def record_day(self, day: date | datetime, steps: int, goal: int | None = None) -> DailyRecord:
        """Backfill entry point for a specific past (or present) day."""
        return self.upsert_day(self.clock.local_day(day), steps, goal)

    def backfill_missing_days(self) -> int:
        """Fill every missing past day in the retention window with a zero-step record.

        Returns how many were added. Placeholders count as misses, same as absent days.
        """
        today = self.clock.today()
        added = 0
        for offset in range(self.retention_days, 0, -1):
            day = today - timedelta(days=offset)
            if day_key(day) in self._records:
                continue
            self._records[day_key(day)] = DailyRecord(day=day, steps=0, goal=self.default_goal)
            added += 1
        if added:
            self._reindex()
            logger.info("Backfilled missing days", added=added)
            self._emit(HistoryEvent(kind="backfilled"))
        return added

    def roll_over(self) -> bool:
        """Finalize the previous day once the clock has moved to a new one.

        Past records are left as-is; today gets an empty record if it has none.
        Returns False when the day has not changed since the last call.
        """
        today = self.clock.today()
        if today == self.last_processed_day:
            return False

        previous = self._records.get(day_key(self.last_processed_day))
        logger.info(
            "Day boundary crossed",
            finalized_day=day_key(self.last_processed_day),
            steps=previous.steps if previous else None,
            goal_met=previous.goal_met if previous else None,
            today=day_key(today),
        )
        self.last_processed_day = today

        if day_key(today) not in self._records:
            self._records[day_key(today)] = DailyRecord(day=today, steps=0, goal=self.default_goal)
            self._reindex()
        self._emit(HistoryEvent(kind="day_rolled", day_key=day_key(today)))
        return True

    def reset(self) -> None:
        self._records = {}
        self.last_processed_day = self.clock.today()
        self.last_updated = datetime.now(timezone.utc)
        logger.info("History reset")
        self._emit(HistoryEvent(kind="reset"))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[DailyRecord]:
        return list(self._records.values())

    @property
    def is_new_user(self) -> bool:
        return not self._records

    def get(self, key: str | date) -> DailyRecord | None:
        return self._records.get(day_key(parse_day_key(key)))

    def today_record(self) -> DailyRecord | None:
        return self._records.get(day_key(self.clock.today()))

    def was_goal_met(self, key: str | date) -> bool:
        record = self.get(key)
        return record.goal_met if record is not None else False

    def goal_status(self, key: str | date) -> GoalStatus:
        record = self.get(key)
        if record is None:
            return GoalStatus.unknown
        return GoalStatus.met if record.goal_met else GoalStatus.missed

    def last_n_days(self, n: int) -> list[DayView]:
        """Exactly `n` day views ending at today, oldest first.

        Today always has data; other days only when stored with steps.
        """
        if n <= 0:
            return []
        today = self.clock.today()
        views: list[DayView] = []
        for offset in range(n - 1, -1, -1):
            day = today - timedelta(days=offset)
            is_today = offset == 0
            record = self._records.get(day_key(day))
            if record is None:
                views.append(DayView(day=day, goal=self.default_goal, has_data=is_today, is_today=is_today))
                continue
            views.append(
                DayView(
                    day=day,
                    steps=record.steps,
                    goal=record.goal,
                    goal_met=record.goal_met,
                    has_data=record.steps > 0 or is_today,
                    is_today=is_today,
                )
            )
        return views

    def last_7_days(self) -> list[DayView]:
        return self.last_n_days(WEEK_DAYS)

    def weekly_total(self) -> int:
        """Rolling 7-day step total, today included."""
        return sum(view.steps for view in self.last_7_days())

    def consecutive_misses(self) -> int:
        """Unbroken missed days walking back from yesterday.

        A day with no record counts as a miss, so an empty ledger reports the
        full retention depth. The scan stops at the first goal-met day.
        """
        today = self.clock.today()
        misses = 0
        for offset in range(1, self.retention_days + 1):
            day = today - timedelta(days=offset)
            record = self._records.get(day_key(day))
            if record is not None and record.goal_met:
                break
            misses += 1
        return misses

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(
            records=self.records,
            last_updated=self.last_updated,
            last_processed_day=self.last_processed_day,
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: HistorySnapshot,
        clock: Clock | None = None,
        **kwargs,
    ) -> HistoryEngine:
        engine = cls(clock, **kwargs)
        for record in snapshot.records:
            engine._records[record.day_key] = record
        engine._reindex()
        if snapshot.last_processed_day is not None:
            engine.last_processed_day = snapshot.last_processed_day
        engine.last_updated = snapshot.last_updated
        return engine
