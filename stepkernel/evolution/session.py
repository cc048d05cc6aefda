"""Activity session — one user's engines wired together.

Build one per user session and pass it to whoever needs it. The session
owns the permanent phase, the rolling weekly total, cumulative steps and
milestone events, and produces the snapshot handed to persistence.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable, Mapping

from stepkernel.evolution import phases
from stepkernel.evolution.clock import Clock
from stepkernel.evolution.decay import DecayEngine, DecayListener
from stepkernel.evolution.extractor import extract_daily_steps
from stepkernel.evolution.history import WEEK_DAYS, HistoryEngine
from stepkernel.evolution.models import (
    DayView,
    DecayState,
    HistoryEvent,
    MilestoneEvent,
    ProgressState,
    SessionSnapshot,
)
from stepkernel.logger import logger

MilestoneListener = Callable[[MilestoneEvent], None]


class ActivitySession:
    def __init__(
        self,
        clock: Clock | None = None,
        *,
        history: HistoryEngine | None = None,
        progress: ProgressState | None = None,
        decay_state: DecayState | None = None,
    ):
        self.history = history or HistoryEngine(clock)
        self.clock = self.history.clock
        self.progress = progress or ProgressState()
        if decay_state is None:
            decay_state = DecayState(
                baseline_phase=self.progress.baseline_phase,
                displayed_phase=self.progress.baseline_phase,
            )
        self.decay = DecayEngine(self.history, decay_state)
        self._milestone_listeners: list[MilestoneListener] = []
        self.history.subscribe(self._on_history_event)
        self._refresh_progress()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_milestone(self, listener: MilestoneListener) -> Callable[[], None]:
        self._milestone_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._milestone_listeners:
                self._milestone_listeners.remove(listener)

        return _unsubscribe

    def on_state_change(self, listener: DecayListener) -> Callable[[], None]:
        return self.decay.subscribe(listener)

    def _on_history_event(self, event: HistoryEvent) -> None:
        self._refresh_progress()

    def _refresh_progress(self) -> None:
        """Recompute the weekly total and graduate the permanent phase (never demote)."""
        weekly = self.history.weekly_total()
        earned = phases.phase_for_weekly_total(weekly)
        accessible = phases.accessible_phase(earned, self.progress.is_premium)
        baseline = max(self.progress.baseline_phase, accessible)

        if baseline > self.progress.baseline_phase:
            logger.info(
                "Phase graduated",
                previous_phase=self.progress.baseline_phase,
                baseline_phase=baseline,
                earned_phase=earned,
                weekly_steps=weekly,
                is_premium=self.progress.is_premium,
            )

        self.progress.weekly_steps = weekly
        self.progress.earned_phase = earned
        self.progress.baseline_phase = baseline
        self.decay.set_baseline_phase(baseline)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def ingest_today(self, steps: int) -> DecayState:
        """Apply today's total-so-far from the step source."""
        self.history.update_today(steps)
        return self.decay.state

    def backfill(self, daily_steps: Mapping[Any, Any]) -> int:
        """Apply a {day -> steps} map covering the last week. Returns days written.

        Past days are written as reported; today only when the source has
        more steps than already stored.
        """
        by_day = extract_daily_steps(daily_steps, self.clock.tz)
        today = self.clock.today()
        written = 0
        for offset in range(WEEK_DAYS - 1, -1, -1):
            day = today - timedelta(days=offset)
            steps = by_day.get(day)
            if not steps:
                continue
            if offset > 0:
                self.history.record_day(day, steps)
                written += 1
                continue
            current = self.history.today_record()
            if current is None or steps > current.steps:
                self.history.update_today(steps)
                written += 1
        logger.info("Backfilled history from step source", written=written, reported=len(by_day))
        return written

    def update_cumulative_steps(self, total: int) -> int | None:
        """Track the all-time step total. Returns the milestone crossed, if any."""
        previous = self.progress.cumulative_steps
        if total <= previous:
            return None
        self.progress.cumulative_steps = total

        milestone = phases.check_milestone_crossed(previous, total)
        if milestone is None:
            return None

        self.progress.last_milestone = milestone
        event = MilestoneEvent(
            milestone=milestone,
            label=phases.format_milestone(milestone),
            cumulative_steps=total,
        )
        logger.info("Milestone reached", milestone=milestone, cumulative_steps=total)
        for listener in list(self._milestone_listeners):
            listener(event)
        return milestone

    def set_premium(self, is_premium: bool) -> None:
        self.progress.is_premium = is_premium
        self._refresh_progress()

    def handle_day_boundary(self) -> DecayState:
        state = self.decay.handle_day_boundary()
        self._refresh_progress()
        return state

    def reset(self) -> None:
        """Global reset: history, decay and progress (entitlement kept)."""
        self.progress = ProgressState(is_premium=self.progress.is_premium)
        self.decay.reset()
        self.history.reset()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    @property
    def decay_state(self) -> DecayState:
        return self.decay.state

    @property
    def baseline_phase(self) -> int:
        return self.progress.baseline_phase

    @property
    def displayed_phase(self) -> int:
        return self.decay.state.displayed_phase

    @property
    def weekly_steps(self) -> int:
        return self.progress.weekly_steps

    @property
    def weekly_progress_fraction(self) -> float:
        return phases.weekly_progress_fraction(self.progress.weekly_steps, self.progress.baseline_phase)

    @property
    def steps_remaining_to_next_phase(self) -> int | None:
        return phases.steps_remaining_to_next_phase(self.progress.weekly_steps, self.progress.baseline_phase)

    @property
    def is_maxed(self) -> bool:
        return phases.is_max_phase(self.progress.baseline_phase)

    @property
    def has_locked_phase(self) -> bool:
        """Earned more than the entitlement allows."""
        return self.progress.earned_phase > self.progress.baseline_phase

    def last_7_days(self) -> list[DayView]:
        return self.history.last_7_days()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            history=self.history.snapshot(),
            decay=self.decay.state,
            progress=self.progress.model_copy(),
        )

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot, clock: Clock | None = None) -> ActivitySession:
        history = HistoryEngine.from_snapshot(snapshot.history, clock)
        return cls(
            history=history,
            progress=snapshot.progress.model_copy(),
            decay_state=snapshot.decay,
        )
