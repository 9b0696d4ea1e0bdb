"""
History projector.

Replays a date -> completed log into tier, level, days_completed, streak and
completed_today. Pure reduction: the same history and the same `today`
always give an equal Projection, however often it runs.

Algorithm:
1. Collapse the log to one value per date (later entries win)
2. total_completed = number of completed dates
3. streak: walk back from today while each day is completed; an incomplete
   today gives 0 without looking at yesterday
4. Starting at D / level 1, spend total_completed in chunks of the tier's
   required days; past level 10 move to the next tier, or at the final tier
   clamp to level 10 with nothing left over
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, replace
from datetime import date, timedelta
from typing import Dict, Iterable

from animaforge.core.errors import InvariantViolationError
from animaforge.features.tiers.ladder import (
    FINAL_TIER,
    MAX_LEVEL,
    TIER_ORDER,
    TIERS_ASCENDING,
    is_final_tier,
    next_tier,
    required_days_for_tier,
)
from animaforge.models.identity import HistoryEntry, Progress


@dataclass(frozen=True)
class Projection:
    tier: str
    level: int
    days_completed: int
    required_days_per_level: int
    streak_days: int
    completed_today: bool
    total_completed: int

    def to_dict(self) -> dict:
        return asdict(self)


def collapse_history(history: Iterable[HistoryEntry]) -> Dict[date, bool]:
    collapsed: Dict[date, bool] = {}
    for entry in history:
        collapsed[entry.date] = bool(entry.completed)
    return collapsed


def streak_ending_today(completed_by_day: Dict[date, bool], today: date) -> int:
    streak = 0
    day = today
    while completed_by_day.get(day):
        streak += 1
        day -= timedelta(days=1)
    return streak


def refresh_daily_fields(progress: Progress, history: Iterable[HistoryEntry], today: date) -> Progress:
    """Re-derive completed_today and streak_days of a stored Progress for `today`."""
    completed_by_day = collapse_history(history)
    return replace(
        progress,
        completed_today=completed_by_day.get(today, False),
        streak_days=streak_ending_today(completed_by_day, today),
    )


def project_history(history: Iterable[HistoryEntry], today: date, final_tier: str = FINAL_TIER) -> Projection:
    if final_tier not in TIER_ORDER:
        raise InvariantViolationError(f"Unknown final tier: {final_tier}", code="unknown_tier")

    completed_by_day = collapse_history(history)
    total_completed = sum(1 for done in completed_by_day.values() if done)

    tier = TIERS_ASCENDING[0]
    level = 1
    remaining = total_completed
    required = required_days_for_tier(tier)

    while remaining >= required:
        remaining -= required
        level += 1
        if level > MAX_LEVEL:
            if not is_final_tier(tier, final_tier):
                tier = next_tier(tier)
                level = 1
                required = required_days_for_tier(tier)
            else:
                level = MAX_LEVEL
                remaining = 0
                break

    return Projection(
        tier=tier,
        level=level,
        days_completed=remaining,
        required_days_per_level=required,
        streak_days=streak_ending_today(completed_by_day, today),
        completed_today=completed_by_day.get(today, False),
        total_completed=total_completed,
    )
