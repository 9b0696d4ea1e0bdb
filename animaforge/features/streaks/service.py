from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from animaforge.core.clock import Clock, SystemClock
from animaforge.core.optimistic import InFlightGuard, OptimisticStore
from animaforge.features.rewards.ledger import RewardLedger
from animaforge.features.streaks.engine import MAX_LEVEL, MAX_TOTAL_WILL, StreakEngine
from animaforge.models.streak import MilestoneReward, StreakIncrement, StreakState, StreakVisualState
from animaforge.persistence.base import Repository

logger = logging.getLogger("animaforge")


@dataclass(frozen=True)
class DailyCompletionResult:
    success: bool
    increment: StreakIncrement
    visual_state: StreakVisualState


@dataclass(frozen=True)
class LevelUpResult:
    success: bool
    previous_level: int
    new_level: int
    streak_reset: bool
    history_entry: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class WillAward:
    actual_gain: float
    capped: bool
    new_total: float


def aggregate_rewards(
    rewards: Optional[MilestoneReward], sub_rewards: Optional[MilestoneReward]
) -> Dict[str, object]:
    """Sum coins and stars of a milestone and a sub-milestone landing on the same day."""
    coins = 0
    stars = 0
    ticket = None
    for reward in (sub_rewards, rewards):
        if reward is None:
            continue
        coins += reward.coins
        stars += reward.stars
        ticket = reward.ticket or ticket
    return {"coins": coins, "stars": stars, "ticket": ticket}


def calculate_will_award(current_total: float, proposed_gain: float) -> WillAward:
    actual = StreakEngine.enforce_will_cap(current_total, proposed_gain)
    return WillAward(
        actual_gain=actual,
        capped=actual < proposed_gain,
        new_total=StreakEngine.calculate_will_gain(current_total + actual),
    )


def validate_streak_state(state: StreakState) -> Tuple[bool, List[str]]:
    errors: List[str] = []
    if not 1 <= state.current_level <= MAX_LEVEL + 1:
        errors.append(f"Invalid level: {state.current_level}. Must be 1-{MAX_LEVEL + 1}.")
    if state.current_streak < 0:
        errors.append(f"Invalid streak: {state.current_streak}. Must be >= 0.")
    if state.max_streak < state.current_streak:
        errors.append(f"max_streak {state.max_streak} below current streak {state.current_streak}.")
    if state.total_will_earned > MAX_TOTAL_WILL:
        errors.append(f"Will cap exceeded: {state.total_will_earned}. Max is {MAX_TOTAL_WILL}.")
    return not errors, errors


class StreakService:
    """
    Per-user streak ladder. The streak advances only through
    process_daily_completion, once per fully completed day.
    """

    def __init__(
        self,
        repository: Repository,
        ledger: RewardLedger,
        clock: Optional[Clock] = None,
        guard: Optional[InFlightGuard] = None,
    ):
        self._repository = repository
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._guard = guard or InFlightGuard()
        self._local: OptimisticStore[StreakState] = OptimisticStore()

    def get_state(self, user_id: str) -> StreakState:
        state = self._local.get(user_id) or self._repository.get_streak_state(user_id) or StreakState(user_id=user_id)
        self._local.put(user_id, state)
        return state

    def process_daily_completion(self, user_id: str, all_tasks_complete: bool = True) -> DailyCompletionResult:
        """Advance the ladder for today; a second call on the same date changes nothing and pays nothing."""
        today = self._clock.today()
        with self._guard.hold(f"streak:{user_id}"):
            state = self.get_state(user_id)
            if not all_tasks_complete:
                return self._idle(state)
            if state.last_completed_on == today:
                logger.info("streak.already_counted", extra={"user_id": user_id, "day": today.isoformat()})
                return self._idle(state)

            increment = StreakEngine.increment_streak(state)
            increment = replace(increment, new_state=replace(increment.new_state, last_completed_on=today))
            with self._local.update(user_id, increment.new_state):
                self._repository.save_streak_state(increment.new_state)
            self._pay_out(user_id, increment)

        new_state = increment.new_state
        return DailyCompletionResult(
            success=True,
            increment=increment,
            visual_state=StreakEngine.get_streak_visual_state(new_state.current_streak, new_state.current_level),
        )

    def process_level_up(self, user_id: str) -> LevelUpResult:
        """Prestige reset, refused until the current level's milestone is reached."""
        with self._guard.hold(f"streak:{user_id}"):
            state = self.get_state(user_id)
            previous = state.current_level
            if not StreakEngine.has_reached_milestone(state.current_streak, previous):
                logger.warning(
                    "streak.level_up_refused",
                    extra={"user_id": user_id, "streak": state.current_streak, "level": previous},
                )
                return LevelUpResult(
                    success=False,
                    previous_level=previous,
                    new_level=previous,
                    streak_reset=False,
                    history_entry={"level": previous, "max_streak": state.max_streak, "will_earned": 0.0},
                )

            new_state = StreakEngine.handle_prestige_reset(state, completed_at=self._clock.now())
            with self._local.update(user_id, new_state):
                self._repository.save_streak_state(new_state)

        entry = new_state.streak_history[-1]
        logger.info("streak.prestige", extra={"user_id": user_id, "level": new_state.current_level})
        return LevelUpResult(
            success=True,
            previous_level=previous,
            new_level=new_state.current_level,
            streak_reset=True,
            history_entry={"level": entry.level, "max_streak": entry.max_streak, "will_earned": entry.will_earned},
        )

    def process_streak_break(self, user_id: str) -> StreakState:
        with self._guard.hold(f"streak:{user_id}"):
            state = self.get_state(user_id)
            new_state = StreakEngine.reset_streak(state)
            with self._local.update(user_id, new_state):
                self._repository.save_streak_state(new_state)
        logger.info("streak.broken", extra={"user_id": user_id, "streak": state.current_streak})
        return new_state

    def get_progression_summary(self, user_id: str) -> Dict[str, object]:
        state = self.get_state(user_id)
        visual = StreakEngine.get_streak_visual_state(state.current_streak, state.current_level)
        milestone_days = (
            StreakEngine.milestone_days(state.current_level) if state.current_level <= MAX_LEVEL else 0
        )
        return {
            "level": state.current_level,
            "streak": state.current_streak,
            "max_streak": state.max_streak,
            "total_will": state.total_will_earned,
            "next_milestone": milestone_days,
            "visual_state": visual.to_dict(),
        }

    def _pay_out(self, user_id: str, increment: StreakIncrement) -> None:
        totals = aggregate_rewards(increment.rewards, increment.sub_rewards)
        if totals["coins"] or totals["stars"]:
            self._ledger.apply_rewards(
                user_id,
                coins=totals["coins"],
                stars=totals["stars"],
                reason_code="streak_milestone" if increment.milestone_reached else "streak_sub_milestone",
                metadata={"level": increment.new_state.current_level, "streak": increment.new_state.current_streak},
            )
        if increment.will_gain > 0:
            self._ledger.apply_rewards(
                user_id,
                stat_name="will",
                stat_points=increment.will_gain,
                reason_code="streak_will",
            )

    @staticmethod
    def _idle(state: StreakState) -> DailyCompletionResult:
        idle = StreakIncrement(
            new_state=state,
            milestone_reached=False,
            sub_milestone_reached=False,
            rewards=None,
            sub_rewards=None,
            will_gain=0.0,
        )
        return DailyCompletionResult(
            success=False,
            increment=idle,
            visual_state=StreakEngine.get_streak_visual_state(state.current_streak, state.current_level),
        )
