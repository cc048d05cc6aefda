"""Decay engine — displayed phase and decay status from recent misses.

Logic:
- strong: goal met today, no misses since the last goal-met day, or a
  new user with nothing stored before today
- neutral: 1 miss, displayed phase one below baseline (minimum 1)
- tired: 2+ misses, displayed phase still only one below baseline
- any goal-met day restores to strong instantly

The engine listens to the history engine and re-evaluates on every change.
Listeners are only notified when the displayed phase or miss count moves.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from stepkernel.evolution.history import HistoryEngine
from stepkernel.evolution.models import DecayState, HistoryEvent
from stepkernel.evolution.phases import clamp_phase

DecayListener = Callable[[DecayState], None]


def decayed_phase(baseline_phase: int, consecutive_misses: int) -> int:
    """Phase to display for a miss streak. Never more than one level down."""
    if consecutive_misses <= 0:
        return baseline_phase
    return max(1, baseline_phase - 1)


class DecayEngine:
    def __init__(self, history: HistoryEngine, state: DecayState | None = None):
        self.history = history
        self.state = state or DecayState()
        self._listeners: list[DecayListener] = []
        self._detach = history.subscribe(self._on_history_event)
        self._recompute()

    def subscribe(self, listener: DecayListener) -> Callable[[], None]:
        """Register `listener` for decay state changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        """Stop following the history engine."""
        self._detach()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    def _on_history_event(self, event: HistoryEvent) -> None:
        self.evaluate()

    def _is_new_user(self) -> bool:
        records = self.history.records
        return not records or records[0].day >= self.history.clock.today()

    def _recompute(self) -> bool:
        """Apply the transition rules. Returns True when listeners should hear about it."""
        baseline = self.state.baseline_phase
        misses = self.history.consecutive_misses()
        today_record = self.history.today_record()
        last_goal_met_day = self.state.last_goal_met_day

        if today_record is not None and today_record.goal_met:
            misses = 0
            last_goal_met_day = today_record.day
        elif self._is_new_user():
            # Nothing tracked before today: keep the new-user defaults
            misses = 0
        displayed = decayed_phase(baseline, misses)

        if displayed == self.state.displayed_phase and misses == self.state.consecutive_misses:
            if last_goal_met_day != self.state.last_goal_met_day:
                self.state = self.state.model_copy(update={"last_goal_met_day": last_goal_met_day})
            return False

        previous = self.state
        self.state = previous.model_copy(
            update={
                "displayed_phase": displayed,
                "consecutive_misses": misses,
                "last_goal_met_day": last_goal_met_day,
                "last_updated": datetime.now(timezone.utc),
            }
        )
        logger.info(
            "Decay state changed",
            baseline_phase=baseline,
            displayed_phase=displayed,
            previous_displayed_phase=previous.displayed_phase,
            consecutive_misses=misses,
            status=self.state.decay_status.value,
        )
        return True

    def evaluate(self) -> DecayState:
        """Recompute from current history and return the (possibly unchanged) state."""
        if self._recompute():
            self._notify()
        return self.state

    def restore_to_strong(self) -> DecayState:
        """Force full strength regardless of history (manual reset, unlock)."""
        self.state = self.state.model_copy(
            update={
                "displayed_phase": self.state.baseline_phase,
                "consecutive_misses": 0,
                "last_updated": datetime.now(timezone.utc),
            }
        )
        logger.info("Decay restored to strong", baseline_phase=self.state.baseline_phase)
        self._notify()
        return self.state

    def set_baseline_phase(self, phase: int) -> DecayState:
        """Raise the permanent phase. Lower values are ignored."""
        baseline = max(self.state.baseline_phase, clamp_phase(phase))
        if baseline == self.state.baseline_phase:
            return self.state

        logger.info("Baseline phase raised", previous=self.state.baseline_phase, baseline_phase=baseline)
        self.state = self.state.model_copy(update={"baseline_phase": baseline})
        self._recompute()
        self._notify()
        return self.state

    def update_steps(self, steps: int) -> DecayState:
        """Record today's total-so-far; the history event drives re-evaluation."""
        self.history.update_today(steps)
        return self.state

    def handle_day_boundary(self) -> DecayState:
        self.history.roll_over()
        return self.evaluate()

    def reset(self) -> DecayState:
        self.state = DecayState()
        logger.info("Decay state reset")
        self._notify()
        return self.state
