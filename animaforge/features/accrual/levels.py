"""
Tempering path level table.

Ten levels; each spreads its main stat limit evenly over five gates
(gate_stat_cap = main_stat_limit / 5). The limits sum to 20.0 body points.
"""

from typing import Dict

from animaforge.core.errors import NotFoundError
from animaforge.models.progress import GATES, LevelConfig, TrialReward

GATE_COUNT = len(GATES)


def _level(level, days_required, main_stat_limit, base_coins, base_body_points, xp_to_level_up, trial):
    return LevelConfig(
        level=level,
        days_required=days_required,
        main_stat_limit=main_stat_limit,
        gate_stat_cap=main_stat_limit / GATE_COUNT,
        base_coins=base_coins,
        base_body_points=base_body_points,
        xp_to_level_up=xp_to_level_up,
        trial=trial,
    )


TEMPERING_LEVELS: Dict[int, LevelConfig] = {
    config.level: config
    for config in (
        _level(1, 3, 1.0, 30, 2, 120, TrialReward("The Bronze Statue", 200, 1, 1, "Kaskol of Darkness")),
        _level(2, 5, 1.25, 35, 3, 200, TrialReward("The Stone Roots", 300, 1, 1, "Gentleman Gloves")),
        _level(3, 7, 1.5, 40, 3, 280, TrialReward("The Unshakable Pillar", 500, 2, 1, "Long Coat of Elegance")),
        _level(4, 9, 1.75, 45, 4, 360, TrialReward("The Serpent's Breath", 600, 2, 1, "Bamboo Scroll")),
        _level(5, 11, 2.0, 50, 4, 440, TrialReward("The Five-Minute Fire", 800, 3, 1, "Copper Wrist Weights")),
        _level(6, 13, 2.5, 55, 5, 520, TrialReward("The Thunderous Silence", 1200, 3, 1, "Tiger Balm")),
        _level(7, 15, 2.5, 60, 5, 600, TrialReward("The Lateral Gate", 2000, 3, 1, "Weighted Vest")),
        _level(8, 17, 2.5, 65, 6, 680, TrialReward("The Diamond Body", 2500, 4, 1, "Iron Wrist Beads")),
        _level(9, 19, 2.5, 70, 6, 760, TrialReward("The Red Furnace", 3000, 5, 1, "Ronin's Bokken")),
        _level(10, 21, 2.5, 75, 7, 840, TrialReward("The Gate of Fire", 3000, 1, 50, "Crown")),
    )
}


def get_level_config(level: int) -> LevelConfig:
    try:
        return TEMPERING_LEVELS[level]
    except KeyError:
        raise NotFoundError(f"No tempering level {level}", code="level_not_found") from None


def total_main_stat_limit() -> float:
    return sum(config.main_stat_limit for config in TEMPERING_LEVELS.values())
