"""
Overall rank engine.

Pure, deterministic computation of an overall rank from four raw stats.

Scoring:
- Each raw stat maps to a rank value 0..12 (every 5 raw points is one step, F..S)
- Body, mind and soul form the elite average
- Will is the anchor dimension
- final = elite_average * 0.7 + will * 0.3, rounded to 2 decimals
"""

import math
from typing import Mapping, Union

from animaforge.models.rank import Dimensions, RankResult


class RankEngine:
    """Pure rank computation. Same four inputs, same output."""

    POINTS_PER_STEP = 5
    MAX_RANK_VALUE = 12
    ELITE_WEIGHT = 0.7
    ANCHOR_WEIGHT = 0.3

    RANK_LETTERS = ("F", "F+", "E", "E+", "D", "D+", "C", "C+", "B", "B+", "A", "A+", "S")

    # (minimum final score, tier), highest first
    OVERALL_THRESHOLDS = (
        (11.5, "S"),
        (10.5, "A+"),
        (9.5, "A"),
        (8.5, "B+"),
        (7.5, "B"),
        (6.5, "C+"),
        (5.5, "C"),
        (4.5, "D+"),
        (4.0, "D"),
        (2.5, "E+"),
        (1.5, "E"),
        (0.5, "F+"),
        (0.0, "F"),
    )

    @staticmethod
    def stat_rank_value(raw: float) -> int:
        """Rank value 0..12 for one raw stat."""
        if raw <= 0:
            return 0
        return min(RankEngine.MAX_RANK_VALUE, int(math.floor(raw / RankEngine.POINTS_PER_STEP)))

    @staticmethod
    def stat_rank_letter(raw: float) -> str:
        return RankEngine.RANK_LETTERS[RankEngine.stat_rank_value(raw)]

    @staticmethod
    def rank_for_score(score: float) -> str:
        for minimum, tier in RankEngine.OVERALL_THRESHOLDS:
            if score >= minimum:
                return tier
        return "F"

    @staticmethod
    def calculate_overall_rank(dimensions: Union[Dimensions, Mapping[str, float]]) -> RankResult:
        """
        Compute the overall rank.

        Args:
            dimensions: Dimensions model or mapping with body, mind, soul, will

        Returns:
            RankResult with final_score and rank_tier
        """
        if not isinstance(dimensions, Dimensions):
            dimensions = Dimensions(**dict(dimensions))

        body = RankEngine.stat_rank_value(dimensions.body)
        mind = RankEngine.stat_rank_value(dimensions.mind)
        soul = RankEngine.stat_rank_value(dimensions.soul)
        anchor = RankEngine.stat_rank_value(dimensions.will)

        elite_average = (body + mind + soul) / 3
        raw_score = elite_average * RankEngine.ELITE_WEIGHT + anchor * RankEngine.ANCHOR_WEIGHT
        final_score = math.floor(raw_score * 100 + 0.5) / 100

        return RankResult(
            final_score=final_score,
            rank_tier=RankEngine.rank_for_score(final_score),
            elite_average=elite_average,
            anchor=anchor,
        )


calculate_overall_rank = RankEngine.calculate_overall_rank
