"""
Progressive stat accrual engine.

Converts "one gate task completed" events into stat points under two caps
at once: the per-gate cap and the level's main stat limit.

Algorithm:
1. points_per_task = gate_stat_cap / days_required
2. If the total is within EPSILON of the main limit, or the gate is within
   EPSILON of its cap, award 0 and leave state untouched
3. Otherwise clamp the award by the gate cap, then by the main limit
4. Commit to the LevelProgress in place and report the new values
"""

import math

from animaforge.core.errors import InvariantViolationError
from animaforge.models.progress import GATES, AccrualResult, LevelConfig, LevelProgress


class AccrualEngine:
    """Cap-aware point accrual. Mutates the LevelProgress it is given."""

    EPSILON = 1e-4

    @staticmethod
    def validate_level_config(config: LevelConfig) -> None:
        if not config.days_required or config.days_required <= 0:
            raise InvariantViolationError(
                f"days_required must be positive for level {config.level}, got {config.days_required}"
            )
        for name in ("gate_stat_cap", "main_stat_limit"):
            value = getattr(config, name)
            if value is None or math.isnan(value) or math.isinf(value) or value < 0:
                raise InvariantViolationError(f"{name} must be a finite non-negative number, got {value}")

    @staticmethod
    def points_per_task(config: LevelConfig) -> float:
        AccrualEngine.validate_level_config(config)
        return config.gate_stat_cap / config.days_required

    @staticmethod
    def accrue(progress: LevelProgress, gate: str, config: LevelConfig) -> AccrualResult:
        """
        Award points for one completed task in `gate`.

        Args:
            progress: LevelProgress for (user, identity, level), mutated in place
            gate: one of GATES
            config: the level's caps and days_required

        Returns:
            AccrualResult with the awarded points and committed totals

        Raises:
            InvariantViolationError: malformed config or unknown gate
        """
        if gate not in GATES:
            raise InvariantViolationError(f"Unknown gate: {gate}", code="unknown_gate")
        per_task = AccrualEngine.points_per_task(config)

        gate_value = progress.gate_progress.get(gate, 0.0)
        total = progress.total_points_earned
        eps = AccrualEngine.EPSILON

        if total >= config.main_stat_limit - eps or gate_value >= config.gate_stat_cap - eps:
            return AccrualResult(points_to_award=0.0, new_gate_progress=gate_value, new_total_progress=total)

        award = per_task
        if gate_value + award > config.gate_stat_cap:
            award = config.gate_stat_cap - gate_value
        if total + award > config.main_stat_limit:
            award = config.main_stat_limit - total
        award = max(0.0, award)

        progress.gate_progress[gate] = gate_value + award
        progress.total_points_earned = total + award

        return AccrualResult(
            points_to_award=award,
            new_gate_progress=progress.gate_progress[gate],
            new_total_progress=progress.total_points_earned,
        )


accrue = AccrualEngine.accrue
