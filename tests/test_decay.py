"""Tests for the decay engine state machine."""

from __future__ import annotations

import pytest

from stepkernel.evolution.decay import DecayEngine, decayed_phase
from stepkernel.evolution.models import DecayState, DecayStatus

from tests.conftest import TODAY, days_ago


def _engine(history, baseline: int) -> DecayEngine:
    return DecayEngine(history, DecayState(baseline_phase=baseline, displayed_phase=baseline))


class TestDecayedPhase:
    def test_no_misses(self):
        assert decayed_phase(3, 0) == 3

    def test_one_level_only(self):
        assert decayed_phase(3, 1) == 2
        assert decayed_phase(3, 25) == 2

    def test_floor_of_one(self):
        assert decayed_phase(1, 5) == 1


class TestScenarios:
    def test_scenario_a_one_miss_is_neutral(self, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 3000)

        state = engine.evaluate()
        assert state.consecutive_misses == 1
        assert state.decay_status == DecayStatus.neutral
        assert state.displayed_phase == 2

    def test_scenario_b_two_misses_is_tired_same_phase(self, clock, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 3000)
        neutral_phase = engine.evaluate().displayed_phase

        history.update_today(1000)
        clock.advance()
        state = engine.evaluate()
        assert state.consecutive_misses == 2
        assert state.decay_status == DecayStatus.tired
        assert state.displayed_phase == neutral_phase

    def test_scenario_c_goal_met_restores(self, clock, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 3000)
        history.update_today(1000)
        clock.advance()
        assert engine.evaluate().decay_status == DecayStatus.tired

        history.update_today(9000)
        state = engine.evaluate()
        assert state.consecutive_misses == 0
        assert state.decay_status == DecayStatus.strong
        assert state.displayed_phase == 3
        assert state.last_goal_met_day == clock.today()

    def test_baseline_one_never_drops_below_one(self, history):
        engine = _engine(history, 1)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 3000)
        state = engine.evaluate()
        assert state.displayed_phase == 1
        assert state.decay_status == DecayStatus.neutral


class TestNewUser:
    def test_empty_history_keeps_defaults(self, decay):
        assert decay.state.consecutive_misses == 0
        assert decay.state.displayed_phase == 1
        assert decay.state.decay_status == DecayStatus.strong

    def test_first_day_of_tracking_is_strong(self, history):
        engine = _engine(history, 2)
        engine.update_steps(300)
        assert engine.state.consecutive_misses == 0
        assert engine.state.displayed_phase == 2

    def test_unmet_first_day_counts_unknown_days_as_misses(self, clock, history):
        engine = _engine(history, 2)
        engine.update_steps(300)
        clock.advance()
        state = engine.handle_day_boundary()
        assert state.consecutive_misses == 30
        assert state.decay_status == DecayStatus.tired
        assert state.displayed_phase == 1


class TestInvariants:
    @pytest.mark.parametrize("baseline", [1, 2, 3, 4])
    @pytest.mark.parametrize("gap", [0, 1, 2, 5, 29])
    def test_decay_invariant(self, history, baseline, gap):
        engine = _engine(history, baseline)
        history.record_day(days_ago(gap + 1), 8000)
        state = engine.evaluate()

        assert state.consecutive_misses == gap
        if state.consecutive_misses == 0:
            assert state.displayed_phase == state.baseline_phase
        else:
            assert state.displayed_phase == max(1, state.baseline_phase - 1)

    def test_restoration_after_long_streak(self, clock, history):
        engine = _engine(history, 4)
        history.record_day(days_ago(1), 8000)
        clock.advance(20)
        assert engine.evaluate().consecutive_misses == 20

        history.update_today(7500)
        state = engine.evaluate()
        assert state.displayed_phase == 4
        assert state.consecutive_misses == 0

    def test_reacts_to_history_without_explicit_evaluate(self, history):
        engine = _engine(history, 2)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 10)
        assert engine.state.consecutive_misses == 1


class TestEqualityGuard:
    def test_redundant_evaluate_does_not_notify(self, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 10)
        seen = []
        engine.subscribe(seen.append)

        engine.evaluate()
        engine.evaluate()
        assert seen == []

    def test_change_notifies_once(self, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(1), 8000)
        seen = []
        engine.subscribe(seen.append)

        history.record_day(days_ago(1), 10)
        engine.evaluate()
        assert len(seen) == 1
        assert seen[0].displayed_phase == 2

    def test_unsubscribe(self, history):
        engine = _engine(history, 3)
        seen = []
        unsubscribe = engine.subscribe(seen.append)
        unsubscribe()
        engine.restore_to_strong()
        assert seen == []


class TestOperations:
    def test_restore_to_strong_ignores_history(self, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(3), 8000)
        history.record_day(days_ago(1), 10)
        assert engine.state.consecutive_misses == 2
        seen = []
        engine.subscribe(seen.append)

        state = engine.restore_to_strong()
        assert state.displayed_phase == 3
        assert state.consecutive_misses == 0
        assert len(seen) == 1

        # History still says two misses
        assert engine.evaluate().consecutive_misses == 2

    def test_set_baseline_raises_displayed(self, history):
        engine = _engine(history, 1)
        state = engine.set_baseline_phase(3)
        assert state.baseline_phase == 3
        assert state.displayed_phase == 3

    def test_set_baseline_never_lowers(self, history):
        engine = _engine(history, 3)
        assert engine.set_baseline_phase(2).baseline_phase == 3

    def test_set_baseline_clamps(self, history):
        engine = _engine(history, 1)
        assert engine.set_baseline_phase(9).baseline_phase == 4

    def test_set_baseline_while_decayed_notifies(self, history):
        engine = _engine(history, 1)
        history.record_day(days_ago(2), 8000)
        history.record_day(days_ago(1), 10)
        seen = []
        engine.subscribe(seen.append)

        state = engine.set_baseline_phase(2)
        assert state.displayed_phase == 1
        assert len(seen) == 1
        assert seen[0].baseline_phase == 2

    def test_update_steps(self, history):
        engine = _engine(history, 2)
        state = engine.update_steps(8000)
        assert history.today_record().steps == 8000
        assert state.last_goal_met_day == TODAY

    def test_handle_day_boundary(self, clock, history):
        engine = _engine(history, 3)
        engine.update_steps(9000)
        clock.advance()
        assert engine.handle_day_boundary().decay_status == DecayStatus.strong

        clock.advance()
        state = engine.handle_day_boundary()
        assert state.consecutive_misses == 1
        assert state.decay_status == DecayStatus.neutral

    def test_handle_day_boundary_is_idempotent(self, clock, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(1), 8000)
        clock.advance(2)
        first = engine.handle_day_boundary()
        second = engine.handle_day_boundary()
        assert first.consecutive_misses == second.consecutive_misses == 2

    def test_reset(self, history):
        engine = _engine(history, 4)
        state = engine.reset()
        assert state.baseline_phase == 1
        assert state.displayed_phase == 1

    def test_close_detaches(self, history):
        engine = _engine(history, 3)
        history.record_day(days_ago(1), 8000)
        engine.close()
        history.record_day(days_ago(1), 10)
        assert engine.state.consecutive_misses == 0
