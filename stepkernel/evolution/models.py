"""Evolution state contract — Pydantic v2 models.

Plain serialisable data only; behaviour lives in the engines.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from stepkernel.evolution.goals_config import DECAY_STYLES, DecayStyle


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DecayStatus(str, Enum):
    strong = "strong"  # Goal met recently, full phase
    neutral = "neutral"  # 1 miss
    tired = "tired"  # 2+ misses


class GoalStatus(str, Enum):
    met = "met"
    missed = "missed"
    unknown = "unknown"


class DailyRecord(BaseModel):
    """One calendar day of steps against that day's goal."""

    model_config = ConfigDict(frozen=True)

    day: date
    steps: int = Field(default=0, ge=0)
    goal: int = Field(default=7500, gt=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def day_key(self) -> str:
        return self.day.isoformat()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def goal_met(self) -> bool:
        return self.steps >= self.goal

    @property
    def progress(self) -> float:
        """Progress toward goal (0.0 and up, can exceed 1.0)."""
        return self.steps / self.goal


class DayView(BaseModel):
    """A single day as shown in the memory view (stored or placeholder)."""

    model_config = ConfigDict(frozen=True)

    day: date
    steps: int = 0
    goal: int = 7500
    goal_met: bool = False
    has_data: bool = False
    is_today: bool = False

    @property
    def day_key(self) -> str:
        return self.day.isoformat()


class HistorySnapshot(BaseModel):
    records: list[DailyRecord] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)
    last_processed_day: date | None = None


class HistoryEvent(BaseModel):
    kind: Literal["day_updated", "backfilled", "day_rolled", "reset"]
    day_key: str | None = None
    record: DailyRecord | None = None


class DecayState(BaseModel):
    """Displayed phase after decay, next to the permanently earned phase."""

    model_config = ConfigDict(frozen=True)

    baseline_phase: int = Field(default=1, ge=1, le=4)
    displayed_phase: int = Field(default=1, ge=1, le=4)
    consecutive_misses: int = Field(default=0, ge=0)
    last_goal_met_day: date | None = None
    last_updated: datetime = Field(default_factory=_utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def decay_status(self) -> DecayStatus:
        if self.consecutive_misses == 0:
            return DecayStatus.strong
        if self.consecutive_misses == 1:
            return DecayStatus.neutral
        return DecayStatus.tired

    @property
    def is_decayed(self) -> bool:
        return self.displayed_phase < self.baseline_phase

    @property
    def style(self) -> DecayStyle:
        return DECAY_STYLES[self.decay_status.value]


class MilestoneEvent(BaseModel):
    milestone: int
    label: str
    cumulative_steps: int
    reached_at: datetime = Field(default_factory=_utcnow)


class ProgressState(BaseModel):
    baseline_phase: int = Field(default=1, ge=1, le=4)  # Permanent, never lowered
    earned_phase: int = Field(default=1, ge=1, le=4)  # Ignores entitlement
    weekly_steps: int = 0
    cumulative_steps: int = 0
    last_milestone: int | None = None
    is_premium: bool = False


class SessionSnapshot(BaseModel):
    """Everything the persistence collaborator needs to store for one user."""

    schema_version: str = "v1"
    saved_at: datetime = Field(default_factory=_utcnow)
    history: HistorySnapshot = Field(default_factory=HistorySnapshot)
    decay: DecayState = Field(default_factory=DecayState)
    progress: ProgressState = Field(default_factory=ProgressState)
