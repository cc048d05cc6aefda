"""Pure stateless phase functions — math only, never raises.

Phases are earned from the rolling 7-day step total. Nothing here is
entitlement-gated or monotonic; callers keep the permanent phase with
max(previous, newly_earned) and apply `accessible_phase` for free users.
"""

from __future__ import annotations

from stepkernel.config import settings
from stepkernel.evolution.goals_config import (
    MAX_PHASE,
    MILESTONES,
    MIN_PHASE,
    PHASES,
    get_phase,
    list_phases,
)


def clamp_phase(phase: int) -> int:
    return max(MIN_PHASE, min(MAX_PHASE, phase))


def phase_for_weekly_total(steps: int) -> int:
    """Phase earned by a weekly total: <25k → 1, <50k → 2, <75k → 3, else 4."""
    earned = MIN_PHASE
    for definition in list_phases():
        if steps >= definition.min_weekly_steps:
            earned = definition.phase
    return earned


def next_phase_threshold(current_phase: int) -> int:
    """Weekly total needed to leave `current_phase`.

    Phase 4 (already maxed) returns the phase-4 entry threshold again;
    check `is_max_phase` before drawing a progress bar.
    """
    nxt = get_phase(current_phase + 1)
    if nxt is None or current_phase < MIN_PHASE:
        return PHASES[MAX_PHASE].min_weekly_steps
    return nxt.min_weekly_steps


def is_max_phase(phase: int) -> bool:
    return phase >= MAX_PHASE


def weekly_progress_fraction(weekly_steps: int, current_phase: int) -> float:
    """Progress toward the next phase threshold, clamped to [0, 1]."""
    threshold = next_phase_threshold(current_phase)
    if threshold <= 0:
        return 1.0
    return max(0.0, min(1.0, weekly_steps / threshold))


def steps_remaining_to_next_phase(weekly_steps: int, current_phase: int) -> int | None:
    """Steps still needed this week. None at phase 4."""
    if is_max_phase(current_phase):
        return None
    return max(0, next_phase_threshold(current_phase) - weekly_steps)


def check_phase_transition(previous_weekly: int, current_weekly: int) -> int | None:
    """The newly earned phase if the weekly total moved up a phase, else None."""
    previous_phase = phase_for_weekly_total(previous_weekly)
    current_phase = phase_for_weekly_total(current_weekly)
    if current_phase > previous_phase:
        return current_phase
    return None


def accessible_phase(earned_phase: int, is_premium: bool, free_cap: int | None = None) -> int:
    """Cap the earned phase for users without premium."""
    if is_premium:
        return clamp_phase(earned_phase)
    cap = free_cap if free_cap is not None else settings.free_phase_cap
    return clamp_phase(min(earned_phase, cap))


def phase_name(phase: int) -> str:
    definition = get_phase(clamp_phase(phase))
    return definition.name if definition else ""


def phase_description(phase: int) -> str:
    definition = get_phase(clamp_phase(phase))
    return definition.description if definition else ""


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------

def check_milestone_crossed(previous_cumulative: int, current_cumulative: int) -> int | None:
    """Smallest milestone m with previous < m <= current.

    Only one milestone is reported per call, even when a jump skips several.
    """
    for milestone in MILESTONES:
        if previous_cumulative < milestone <= current_cumulative:
            return milestone
    return None


def format_milestone(milestone: int) -> str:
    """Short celebratory label: 5000 → "5k!", 1000000 → "1M!"."""
    if milestone >= 1_000_000:
        return f"{milestone // 1_000_000}M!"
    if milestone >= 1_000:
        return f"{milestone // 1_000}k!"
    return f"{milestone}!"
