import math

import pytest

from animaforge.core.errors import InvariantViolationError, NotFoundError, PersistenceError
from animaforge.features.accrual.engine import AccrualEngine, accrue
from animaforge.features.accrual.levels import TEMPERING_LEVELS, get_level_config, total_main_stat_limit
from animaforge.features.accrual.service import AccrualService
from animaforge.features.rewards.ledger import RewardLedger
from animaforge.models.identity import Identity
from animaforge.models.progress import GATES, LevelConfig, LevelProgress
from animaforge.tests.mocks import FlakyRepository


def _progress(level=1):
    return LevelProgress(user_id="u1", identity_id="i1", level=level)


def test_level_table_limits_sum_to_twenty():
    assert len(TEMPERING_LEVELS) == 10
    assert total_main_stat_limit() == pytest.approx(20.0)
    for config in TEMPERING_LEVELS.values():
        assert config.gate_stat_cap * len(GATES) == pytest.approx(config.main_stat_limit)


def test_unknown_level_raises_not_found():
    with pytest.raises(NotFoundError):
        get_level_config(11)


def test_level_one_over_four_days_fills_to_main_limit():
    config = get_level_config(1)
    progress = _progress()
    for _ in range(4):
        for gate in GATES:
            accrue(progress, gate, config)
    assert progress.total_points_earned == pytest.approx(1.0, abs=1e-3)
    for gate in GATES:
        assert progress.gate_progress[gate] <= config.gate_stat_cap + AccrualEngine.EPSILON


def test_single_gate_hits_its_cap_then_awards_zero():
    config = get_level_config(6)
    progress = _progress(level=6)
    for _ in range(13):
        accrue(progress, "rooting", config)
    assert progress.gate_progress["rooting"] == pytest.approx(0.5)

    result = accrue(progress, "rooting", config)
    assert result.points_to_award == 0
    assert progress.gate_progress["rooting"] == pytest.approx(0.5)
    assert progress.total_points_earned == pytest.approx(0.5)


def test_full_level_five_reaches_two_points():
    config = get_level_config(5)
    progress = _progress(level=5)
    for _ in range(config.days_required):
        for gate in GATES:
            accrue(progress, gate, config)
    assert progress.total_points_earned == pytest.approx(2.0)


def test_award_is_clamped_by_main_limit():
    config = LevelConfig(
        level=1, days_required=1, main_stat_limit=0.5, gate_stat_cap=1.0,
        base_coins=0, base_body_points=0, xp_to_level_up=0,
    )
    progress = _progress()
    first = accrue(progress, "core", config)
    assert first.points_to_award == pytest.approx(0.5)
    second = accrue(progress, "flow", config)
    assert second.points_to_award == 0
    assert progress.total_points_earned == pytest.approx(0.5)


@pytest.mark.parametrize("days", [0, -3])
def test_non_positive_days_required_raises(days):
    config = LevelConfig(
        level=1, days_required=days, main_stat_limit=1.0, gate_stat_cap=0.2,
        base_coins=0, base_body_points=0, xp_to_level_up=0,
    )
    with pytest.raises(InvariantViolationError):
        accrue(_progress(), "core", config)


@pytest.mark.parametrize("cap", [math.nan, math.inf, -1.0])
def test_malformed_caps_raise(cap):
    config = LevelConfig(
        level=1, days_required=3, main_stat_limit=1.0, gate_stat_cap=cap,
        base_coins=0, base_body_points=0, xp_to_level_up=0,
    )
    with pytest.raises(InvariantViolationError):
        AccrualEngine.validate_level_config(config)


def test_unknown_gate_raises():
    with pytest.raises(InvariantViolationError) as exc:
        accrue(_progress(), "spleen", get_level_config(1))
    assert exc.value.code == "unknown_gate"


class TestAccrualService:
    def test_gate_task_persists_progress_and_pays_out(self, services, repository):
        repository.save_identity(Identity(id="i1", user_id="u1", name="Monk"))

        result = services.accrual.complete_gate_task("i1", "breath")

        assert result.points_to_award == pytest.approx(0.2 / 3)
        stored = repository.get_level_progress("u1", "i1", 1)
        assert stored.gate_progress["breath"] == pytest.approx(0.2 / 3)
        balance = services.ledger.balance("u1")
        assert balance["coins"] == 30
        assert balance["body"] == pytest.approx(0.2 / 3)
        assert repository.get_profile("u1").coins == 30

    def test_capped_gate_still_pays_coins_but_no_points(self, services, repository):
        repository.save_identity(Identity(id="i1", user_id="u1", name="Monk"))
        for _ in range(4):
            services.accrual.complete_gate_task("i1", "flow")

        entries = services.ledger.entries("u1")
        assert len(entries) == 4
        assert entries[-1].stat_points == 0
        assert entries[-1].stat_name is None
        assert services.accrual.get_level_progress("i1").gate_progress["flow"] == pytest.approx(0.2)

    def test_missing_identity_raises(self, services):
        with pytest.raises(NotFoundError):
            services.accrual.complete_gate_task("ghost", "core")

    def test_failed_payout_restores_level_progress(self):
        repository = FlakyRepository()
        repository.save_identity(Identity(id="i1", user_id="u1", name="Monk"))
        ledger = RewardLedger(repository)
        service = AccrualService(repository, ledger)

        repository.fail("save_profile")
        with pytest.raises(PersistenceError):
            service.complete_gate_task("i1", "core")

        assert service.get_level_progress("i1").gate_progress["core"] == 0.0
        assert ledger.entries("u1") == []

        repository.heal()
        result = service.complete_gate_task("i1", "core")
        assert result.points_to_award == pytest.approx(0.2 / 3)
        assert service.get_level_progress("i1").total_points_earned == pytest.approx(0.2 / 3)

    def test_level_info_reports_trial_and_remaining_points(self, services, repository):
        repository.save_identity(Identity(id="i1", user_id="u1", name="Monk", level=2))
        services.accrual.complete_gate_task("i1", "rooting")

        info = services.accrual.get_level_info("i1")

        assert info["config"]["level"] == 2
        assert info["config"]["base_body_points"] == 3
        assert info["config"]["xp_to_level_up"] == 200
        assert info["config"]["trial"]["item_name"] == "Gentleman Gloves"
        assert info["remaining_points"] == pytest.approx(1.25 - info["progress"]["total_points_earned"])
