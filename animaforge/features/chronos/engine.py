"""
Daily reset engine.

Pure once-per-day transition. Given a claimed `today` it decides streak
continuation from yesterday's path progress, clears transient task state,
moves quests onto today's board and stamps the reset date. Coin, star and
stat balances are never part of its output.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Sequence

from animaforge.models.chronos import (
    DailyPathProgress,
    DailyRecord,
    DailyTaskState,
    PathStats,
    Quest,
    StreakEvaluation,
    TaskCompletionOutcome,
)
from animaforge.models.identity import Identity, UserProfile

logger = logging.getLogger("animaforge")

MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class ResetPlan:
    """Everything a reset changes; the service persists it step by step."""

    today: str
    evaluations: Dict[str, StreakEvaluation] = field(default_factory=dict)
    changed_streaks: Dict[str, int] = field(default_factory=dict)
    daily_record: Optional[DailyRecord] = None
    cleared_task_states: Dict[str, DailyTaskState] = field(default_factory=dict)
    quests: List[Quest] = field(default_factory=list)
    profile: Optional[UserProfile] = None


class ChronosEngine:
    COMPLETE_PERCENT = 100

    @staticmethod
    def format_date_for_quest(day: date) -> str:
        """Board date label, e.g. "Dec 25"."""
        return f"{MONTH_ABBREVIATIONS[day.month - 1]} {day.day}"

    @staticmethod
    def should_reset(profile: UserProfile, today: date) -> bool:
        return profile.last_reset_date != today.isoformat()

    @staticmethod
    def completion_percentage(completed: int, total: int) -> int:
        if total <= 0:
            return 0
        return int(math.floor(completed / total * 100 + 0.5))

    @staticmethod
    def evaluate_streak(identity: Identity, yesterday: Optional[DailyPathProgress]) -> StreakEvaluation:
        """A missing or partial yesterday breaks the streak; a full one keeps it as is."""
        if yesterday is None or yesterday.percentage < ChronosEngine.COMPLETE_PERCENT:
            return StreakEvaluation(new_streak=0, was_reset=True)
        return StreakEvaluation(new_streak=identity.current_streak, was_reset=False)

    @staticmethod
    def migrate_quest(quest: Quest, board_date: str) -> Quest:
        if quest.is_recurring:
            return replace(quest, status="today", date=board_date)
        if quest.status != "completed":
            return replace(quest, date=board_date)
        return quest

    @staticmethod
    def build_daily_path_progress(
        user_id: str,
        identity_id: str,
        day: str,
        completed_task_ids: Sequence[str],
        total_tasks: int,
        completed_subtask_ids: Sequence[str] = (),
    ) -> DailyPathProgress:
        completed = len(set(completed_task_ids))
        percentage = ChronosEngine.completion_percentage(completed, total_tasks)
        return DailyPathProgress(
            user_id=user_id,
            identity_id=identity_id,
            date=day,
            tasks_total=total_tasks,
            tasks_completed=completed,
            percentage=percentage,
            status="COMPLETED" if percentage >= ChronosEngine.COMPLETE_PERCENT else "PENDING",
            completed_task_ids=sorted(set(completed_task_ids)),
            completed_subtask_ids=sorted(set(completed_subtask_ids)),
        )

    @staticmethod
    def handle_task_completion(
        identity: Identity,
        progress: Optional[DailyPathProgress],
        task_id: str,
        total_tasks: int,
        day: str,
    ) -> TaskCompletionOutcome:
        """
        Record one task for `day`.

        The identity streak moves up by one only on the first transition into
        100% for `day`. A board that grows and fills again does not count twice.
        """
        before = progress.completed_task_ids if progress else []
        newly = task_id not in before
        updated = ChronosEngine.build_daily_path_progress(
            identity.user_id,
            identity.id,
            day,
            [*before, task_id],
            total_tasks,
            progress.completed_subtask_ids if progress else (),
        )
        already_counted = progress is not None and progress.streak_counted
        incremented = updated.status == "COMPLETED" and not already_counted
        updated.streak_counted = already_counted or incremented
        return TaskCompletionOutcome(
            progress=updated,
            newly_completed=newly,
            streak_incremented=incremented,
            new_streak=identity.current_streak + 1 if incremented else identity.current_streak,
        )

    @staticmethod
    def plan_reset(
        profile: UserProfile,
        identities: Sequence[Identity],
        yesterday_progress: Dict[str, Optional[DailyPathProgress]],
        quests: Sequence[Quest],
        task_states: Dict[str, DailyTaskState],
        task_totals: Dict[str, int],
        today: date,
        yesterday: date,
    ) -> Optional[ResetPlan]:
        """Plan a reset for `today`, or None when this day was already reset."""
        if not ChronosEngine.should_reset(profile, today):
            logger.info("chronos.already_reset", extra={"user_id": profile.id})
            return None

        board_date = ChronosEngine.format_date_for_quest(today)
        plan = ResetPlan(today=today.isoformat())
        record = DailyRecord(user_id=profile.id, date=yesterday.isoformat())

        for identity in identities:
            evaluation = ChronosEngine.evaluate_streak(identity, yesterday_progress.get(identity.id))
            plan.evaluations[identity.id] = evaluation
            if evaluation.new_streak != identity.current_streak:
                plan.changed_streaks[identity.id] = evaluation.new_streak

            state = task_states.get(identity.id) or DailyTaskState()
            record.path_stats[identity.id] = PathStats(
                completed_count=len(state.completed_task_ids),
                total_count=task_totals.get(identity.id, 0),
                streak_before=identity.current_streak,
                streak_after=evaluation.new_streak,
            )
            plan.cleared_task_states[identity.id] = DailyTaskState()

        record.quests_completed = sum(1 for quest in quests if quest.status == "completed")
        plan.daily_record = record
        plan.quests = [ChronosEngine.migrate_quest(quest, board_date) for quest in quests]
        plan.profile = replace(profile, stats=dict(profile.stats), last_reset_date=today.isoformat())
        return plan
