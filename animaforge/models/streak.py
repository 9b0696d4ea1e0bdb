from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import List, Literal, Optional

StreakStage = Literal["ember", "flame", "singularity", "explosion"]


@dataclass(frozen=True)
class MilestoneReward:
    coins: int
    stars: int
    will_gain: float
    ticket: Optional[str] = None


@dataclass
class StreakHistoryEntry:
    level: int
    max_streak: int
    completed_at: Optional[datetime] = None
    will_earned: float = 0.0


@dataclass
class StreakState:
    """
    Prestige-ladder streak state, independent of the identity tier/level.

    total_will_earned never exceeds MAX_TOTAL_WILL. On prestige the current
    streak drops to 0 and current_level moves up by exactly one.
    last_completed_on is the date the streak last advanced; it advances at
    most once per date.
    """

    user_id: str
    current_streak: int = 0
    max_streak: int = 0
    current_level: int = 1
    total_will_earned: float = 0.0
    streak_history: List[StreakHistoryEntry] = field(default_factory=list)
    last_completed_on: Optional[date] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StreakIncrement:
    new_state: StreakState
    milestone_reached: bool
    sub_milestone_reached: bool
    rewards: Optional[MilestoneReward]
    sub_rewards: Optional[MilestoneReward]
    will_gain: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StreakVisualState:
    stage: StreakStage
    days_until_milestone: Optional[int]  # None past the ladder
    progress_percent: float
    is_sub_milestone_day: bool

    def to_dict(self) -> dict:
        return asdict(self)
