"""
Identity domain models.

An Identity is a user's instantiation of a progression path. Its Progress
record is a cached projection of the completion history, which stays the
source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, Literal, Optional

Tier = Literal["D", "D+", "C", "C+", "B", "B+", "A", "A+", "S", "S+", "SS", "SS+", "SSS"]
StatName = Literal["body", "mind", "soul", "will"]


@dataclass
class Identity:
    id: str
    user_id: str
    name: str = ""
    tier: str = "D"
    level: int = 1
    days_completed: int = 0
    required_days_per_level: int = 5
    is_active: bool = True
    current_streak: int = 0
    longest_streak: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Progress:
    """One-to-one companion of an Identity."""

    identity_id: str
    tier: str = "D"
    level: int = 1
    days_completed: int = 0
    required_days_per_level: int = 5
    completed_today: bool = False
    streak_days: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class HistoryEntry:
    """At most one entry per (identity, date); re-recording overwrites."""

    date: date
    completed: bool

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "completed": self.completed}


@dataclass
class UserProfile:
    id: str
    coins: int = 0
    stars: int = 0
    stats: Dict[str, float] = field(
        default_factory=lambda: {"body": 0.0, "mind": 0.0, "soul": 0.0, "will": 0.0}
    )
    last_reset_date: Optional[str] = None  # ISO date YYYY-MM-DD

    def to_dict(self) -> dict:
        return asdict(self)
