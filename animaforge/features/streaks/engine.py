"""
Streak milestone engine.

Pure state machine over StreakState. A level L milestone lands on day
2L + 1; levels 4+ also pay small sub-milestones on day 7 (and day 14 from
level 7). Will is floored to two decimals and hard-capped at MAX_TOTAL_WILL
across the whole ten-level ladder.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional

from animaforge.core.errors import InvariantViolationError
from animaforge.models.streak import (
    MilestoneReward,
    StreakHistoryEntry,
    StreakIncrement,
    StreakState,
    StreakVisualState,
)

logger = logging.getLogger("animaforge")

MAX_LEVEL = 10
MAX_TOTAL_WILL = 15.0
MIN_LADDER_WILL = 12.0

MILESTONE_REWARDS: Dict[int, MilestoneReward] = {
    1: MilestoneReward(coins=50, stars=0, will_gain=0.25),
    2: MilestoneReward(coins=75, stars=1, will_gain=0.40),
    3: MilestoneReward(coins=100, stars=0, will_gain=0.60),
    4: MilestoneReward(coins=150, stars=0, will_gain=0.80),
    5: MilestoneReward(coins=250, stars=2, will_gain=1.00),
    6: MilestoneReward(coins=350, stars=0, will_gain=1.25),
    7: MilestoneReward(coins=450, stars=0, will_gain=1.50),
    8: MilestoneReward(coins=500, stars=3, will_gain=2.00),
    9: MilestoneReward(coins=750, stars=0, will_gain=2.50),
    10: MilestoneReward(coins=1000, stars=5, will_gain=3.00),
}

SUB_MILESTONE_REWARD = MilestoneReward(coins=50, stars=0, will_gain=0.15)

# (streak day, minimum level)
SUB_MILESTONE_DAYS = ((7, 4), (14, 7))

ADVANCED_STAGE_MIN_LEVEL = 4


class StreakEngine:
    """Pure streak/milestone computations."""

    @staticmethod
    def milestone_days(level: int) -> int:
        if level < 1:
            raise InvariantViolationError(f"level must be >= 1, got {level}")
        return 2 * level + 1

    @staticmethod
    def milestone_rewards(level: int) -> Optional[MilestoneReward]:
        return MILESTONE_REWARDS.get(level)

    @staticmethod
    def has_reached_milestone(current_streak: int, level: int) -> bool:
        if level not in MILESTONE_REWARDS:
            return False
        return current_streak >= StreakEngine.milestone_days(level)

    @staticmethod
    def is_sub_milestone_day(current_streak: int, level: int) -> bool:
        """Day 7 from level 4, day 14 from level 7; never the final milestone day."""
        if level < ADVANCED_STAGE_MIN_LEVEL or level not in MILESTONE_REWARDS:
            return False
        if current_streak == StreakEngine.milestone_days(level):
            return False
        return any(current_streak == day and level >= min_level for day, min_level in SUB_MILESTONE_DAYS)

    @staticmethod
    def calculate_will_gain(value: float) -> float:
        """Floor to two decimals, tolerant of binary float noise (0.29 * 100)."""
        return math.floor(value * 100 + 1e-6) / 100

    @staticmethod
    def enforce_will_cap(current_total: float, proposed_gain: float) -> float:
        if current_total + proposed_gain > MAX_TOTAL_WILL:
            return max(0.0, StreakEngine.calculate_will_gain(MAX_TOTAL_WILL - current_total))
        return StreakEngine.calculate_will_gain(proposed_gain)

    @staticmethod
    def total_will_from_milestones() -> float:
        """Ladder Will budget: every milestone plus one 0.15 per full week from level 5."""
        total = 0.0
        for level, reward in MILESTONE_REWARDS.items():
            total += reward.will_gain
            if level >= 5:
                total += ((StreakEngine.milestone_days(level) - 1) // 7) * SUB_MILESTONE_REWARD.will_gain
        return StreakEngine.calculate_will_gain(total)

    @staticmethod
    def validate_milestone_formula() -> bool:
        ok = all(StreakEngine.milestone_days(level) == 2 * level + 1 for level in MILESTONE_REWARDS)
        ok = ok and StreakEngine.milestone_days(MAX_LEVEL) == 21
        if not ok:
            logger.error("streak.milestone_formula_invalid")
        return ok

    @staticmethod
    def validate_will_cap() -> bool:
        total = StreakEngine.total_will_from_milestones()
        ok = MIN_LADDER_WILL <= total <= MAX_TOTAL_WILL
        if not ok:
            logger.error("streak.will_cap_invalid", extra={"total_will": total})
        return ok

    @staticmethod
    def increment_streak(state: StreakState) -> StreakIncrement:
        """
        Advance the streak by one day.

        The sub-milestone is evaluated first; the main milestone fires on the
        transition into its day. Both gains pass through the Will cap.
        """
        new_streak = state.current_streak + 1
        will_gain = 0.0
        rewards: Optional[MilestoneReward] = None
        sub_rewards: Optional[MilestoneReward] = None

        sub_reached = StreakEngine.is_sub_milestone_day(new_streak, state.current_level)
        if sub_reached:
            sub_rewards = SUB_MILESTONE_REWARD
            will_gain += StreakEngine.enforce_will_cap(state.total_will_earned, SUB_MILESTONE_REWARD.will_gain)

        milestone = MILESTONE_REWARDS.get(state.current_level)
        milestone_reached = False
        if milestone is not None:
            days = StreakEngine.milestone_days(state.current_level)
            if new_streak >= days > state.current_streak:
                milestone_reached = True
                rewards = milestone
                will_gain += StreakEngine.enforce_will_cap(state.total_will_earned + will_gain, milestone.will_gain)

        new_state = replace(
            state,
            current_streak=new_streak,
            max_streak=max(state.max_streak, new_streak),
            total_will_earned=StreakEngine.calculate_will_gain(state.total_will_earned + will_gain),
            streak_history=list(state.streak_history),
        )
        logger.info(
            "streak.incremented",
            extra={
                "user_id": state.user_id,
                "streak": new_streak,
                "milestone": milestone_reached,
                "sub_milestone": sub_reached,
                "will_gain": will_gain,
            },
        )
        return StreakIncrement(
            new_state=new_state,
            milestone_reached=milestone_reached,
            sub_milestone_reached=sub_reached,
            rewards=rewards,
            sub_rewards=sub_rewards,
            will_gain=StreakEngine.calculate_will_gain(will_gain),
        )

    @staticmethod
    def handle_prestige_reset(state: StreakState, completed_at: Optional[datetime] = None) -> StreakState:
        """Log the finished level, zero the streak and move up one level."""
        milestone = MILESTONE_REWARDS.get(state.current_level)
        entry = StreakHistoryEntry(
            level=state.current_level,
            max_streak=state.max_streak,
            completed_at=completed_at or datetime.now(timezone.utc),
            will_earned=StreakEngine.calculate_will_gain(milestone.will_gain if milestone else 0.0),
        )
        return replace(
            state,
            current_streak=0,
            max_streak=0,
            current_level=state.current_level + 1,
            streak_history=[*state.streak_history, entry],
        )

    @staticmethod
    def reset_streak(state: StreakState) -> StreakState:
        """Missed day: the chain breaks, everything else stays."""
        return replace(state, current_streak=0, streak_history=list(state.streak_history))

    @staticmethod
    def get_streak_visual_state(current_streak: int, level: int) -> StreakVisualState:
        if level not in MILESTONE_REWARDS:
            return StreakVisualState(
                stage="ember", days_until_milestone=None, progress_percent=0.0, is_sub_milestone_day=False
            )

        days = StreakEngine.milestone_days(level)
        days_until = max(0, days - current_streak)
        advanced = level >= ADVANCED_STAGE_MIN_LEVEL

        if current_streak >= days:
            stage = "explosion" if advanced else "flame"
        elif current_streak <= 2:
            stage = "ember"
        elif days_until <= 2 and advanced:
            stage = "singularity"
        else:
            stage = "flame"

        return StreakVisualState(
            stage=stage,
            days_until_milestone=days_until,
            progress_percent=min(100.0, current_streak / days * 100),
            is_sub_milestone_day=StreakEngine.is_sub_milestone_day(current_streak, level),
        )
