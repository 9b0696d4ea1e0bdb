"""Gate accrual models for the tempering path."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Dict, Literal, Optional, Tuple

Gate = Literal["rooting", "foundation", "core", "flow", "breath"]
GATES: Tuple[str, ...] = ("rooting", "foundation", "core", "flow", "breath")


@dataclass(frozen=True)
class TrialReward:
    name: str
    coins: int
    stars: int
    body_points: int
    item_name: Optional[str] = None


@dataclass(frozen=True)
class LevelConfig:
    """Static configuration for one tempering level."""

    level: int
    days_required: int
    main_stat_limit: float
    gate_stat_cap: float
    base_coins: int = 0
    base_body_points: int = 0
    xp_to_level_up: int = 0
    trial: Optional[TrialReward] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LevelProgress:
    """
    Accrued stat points for one (user, identity, level).

    Invariants: every gate <= gate_stat_cap and total_points_earned <=
    main_stat_limit. Values only grow until a fresh record replaces this one
    when the identity advances a level.
    """

    user_id: str
    identity_id: str
    level: int
    gate_progress: Dict[str, float] = field(default_factory=lambda: {g: 0.0 for g in GATES})
    total_points_earned: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AccrualResult:
    points_to_award: float
    new_gate_progress: float
    new_total_progress: float

    def to_dict(self) -> dict:
        return asdict(self)
