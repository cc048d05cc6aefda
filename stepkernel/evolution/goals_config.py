"""Static evolution configuration — no state, config only.

Each PhaseDefinition ties a phase number to the weekly rolling step total
that earns it. Each DecayStyle ties a decay status to how the avatar is
shown to the user. Milestones are cumulative-step checkpoints.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PhaseDefinition:
    phase: int
    min_weekly_steps: int  # Inclusive lower bound of the weekly total
    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class DecayStyle:
    status: str  # "strong" | "neutral" | "tired"
    label: str
    color: str
    opacity: float
    dimming: float
    tint: str  # "clear" | "yellow" | "gray"
    tint_intensity: float = 0.0


MIN_PHASE = 1
MAX_PHASE = 4

PHASES: dict[int, PhaseDefinition] = {
    1: PhaseDefinition(phase=1, min_weekly_steps=0, name="Dormant", description="This is the beginning."),
    # ~3,571/day
    2: PhaseDefinition(phase=2, min_weekly_steps=25_000, name="Active", description="Movement is becoming part of you."),
    # ~7,143/day
    3: PhaseDefinition(phase=3, min_weekly_steps=50_000, name="Energized", description="This is momentum."),
    # ~10,714/day
    4: PhaseDefinition(phase=4, min_weekly_steps=75_000, name="Ascended", description="You've changed."),
}

MILESTONES: tuple[int, ...] = (
    1_000, 2_500, 5_000, 7_500, 10_000, 15_000, 20_000, 25_000,
    50_000, 75_000, 100_000, 150_000, 200_000, 250_000, 500_000, 1_000_000,
)

DECAY_STYLES: dict[str, DecayStyle] = {
    "strong": DecayStyle(
        status="strong",
        label="Energized",
        color="green",
        opacity=1.0,
        dimming=0.0,
        tint="clear",
    ),
    "neutral": DecayStyle(
        status="neutral",
        label="Winding Down",
        color="yellow",
        opacity=0.85,
        dimming=0.15,
        tint="yellow",
        tint_intensity=0.2,
    ),
    "tired": DecayStyle(
        status="tired",
        label="Resting",
        color="red",
        opacity=0.7,
        dimming=0.3,
        tint="gray",
        tint_intensity=0.3,
    ),
}


def get_phase(phase: int) -> PhaseDefinition | None:
    return PHASES.get(phase)


def list_phases() -> list[PhaseDefinition]:
    return [PHASES[p] for p in sorted(PHASES)]


def get_decay_style(status: str) -> DecayStyle | None:
    return DECAY_STYLES.get(status)
