import pytest

from animaforge.features.rank.engine import RankEngine, calculate_overall_rank
from animaforge.models.rank import Dimensions


class TestOverallRank:
    def test_mid_elite_low_anchor_is_d_plus(self):
        result = calculate_overall_rank({"body": 30, "mind": 30, "soul": 30, "will": 10})
        assert result.rank_tier == "D+"
        assert result.final_score == pytest.approx(4.8, abs=0.1)

    def test_all_zero_is_f(self):
        result = calculate_overall_rank(Dimensions())
        assert result.rank_tier == "F"
        assert result.final_score == 0

    def test_all_sixty_is_s(self):
        result = calculate_overall_rank({"body": 60, "mind": 60, "soul": 60, "will": 60})
        assert result.rank_tier == "S"
        assert result.final_score == 12

    def test_will_is_anchor_not_part_of_elite_average(self):
        result = calculate_overall_rank({"body": 40, "mind": 40, "soul": 40, "will": 10})
        assert result.elite_average == 8
        assert result.anchor == 2
        assert result.final_score == pytest.approx(6.2)
        assert result.rank_tier == "C"

    def test_zero_anchor(self):
        result = calculate_overall_rank({"body": 50, "mind": 50, "soul": 50, "will": 0})
        assert result.final_score == pytest.approx(7.0)
        assert result.rank_tier == "C+"

    def test_deterministic(self):
        dims = {"body": 17, "mind": 43, "soul": 8, "will": 22}
        assert calculate_overall_rank(dims) == calculate_overall_rank(dims)

    def test_stats_above_sixty_clamp_to_s(self):
        result = calculate_overall_rank({"body": 500, "mind": 500, "soul": 500, "will": 500})
        assert result.final_score == 12
        assert result.rank_tier == "S"


class TestStatRank:
    @pytest.mark.parametrize(
        "raw,letter",
        [(0, "F"), (4.9, "F"), (5, "F+"), (10, "E"), (27, "D+"), (59, "A+"), (60, "S"), (999, "S")],
    )
    def test_letters(self, raw, letter):
        assert RankEngine.stat_rank_letter(raw) == letter

    def test_score_thresholds(self):
        assert RankEngine.rank_for_score(4.0) == "D"
        assert RankEngine.rank_for_score(4.49) == "D"
        assert RankEngine.rank_for_score(6.0) == "C"
        assert RankEngine.rank_for_score(11.5) == "S"
