"""
Daily-boundary models.

The reset consumes yesterday's DailyPathProgress per identity, the quest
board, and the transient per-identity task completion sets.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Literal, Optional, Set

PathStatus = Literal["PENDING", "COMPLETED"]


@dataclass
class DailyPathProgress:
    user_id: str
    identity_id: str
    date: str  # ISO date YYYY-MM-DD
    tasks_total: int = 0
    tasks_completed: int = 0
    percentage: int = 0
    status: PathStatus = "PENDING"
    completed_task_ids: List[str] = field(default_factory=list)
    completed_subtask_ids: List[str] = field(default_factory=list)
    streak_counted: bool = False  # set on the first transition into 100% for this date

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Quest:
    id: str
    title: str
    is_recurring: bool
    status: str = "today"
    date: str = ""  # board date, formatted like "Dec 25"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DailyTaskState:
    completed_task_ids: Set[str] = field(default_factory=set)
    completed_subtask_ids: Set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.completed_task_ids and not self.completed_subtask_ids


@dataclass(frozen=True)
class StreakEvaluation:
    new_streak: int
    was_reset: bool


@dataclass
class PathStats:
    completed_count: int
    total_count: int
    streak_before: int
    streak_after: int


@dataclass
class DailyRecord:
    """Snapshot of the day being closed out by a reset."""

    user_id: str
    date: str
    path_stats: Dict[str, PathStats] = field(default_factory=dict)
    quests_completed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ResetResult:
    success: bool
    skipped: bool = False
    paths_processed: int = 0
    quests_processed: int = 0
    streaks_reset: List[str] = field(default_factory=list)
    streaks_maintained: List[str] = field(default_factory=list)
    daily_record: Optional[DailyRecord] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TaskCompletionOutcome:
    """Result of recording one task; streak_incremented is true at most once per day."""

    progress: DailyPathProgress
    newly_completed: bool
    streak_incremented: bool
    new_streak: int
