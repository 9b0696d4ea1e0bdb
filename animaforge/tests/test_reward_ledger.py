import pytest

from animaforge.core.errors import InvariantViolationError
from animaforge.features.rewards.ledger import RewardLedger
from animaforge.persistence.memory import InMemoryRepository


def test_balance_accumulates_per_user():
    ledger = RewardLedger()
    ledger.apply_rewards("u1", coins=50, stars=1, reason_code="streak_milestone")
    ledger.apply_rewards("u1", stat_name="will", stat_points=0.25, reason_code="streak_will")
    ledger.apply_rewards("u2", coins=10)

    balance = ledger.balance("u1")
    assert balance["coins"] == 50
    assert balance["stars"] == 1
    assert balance["will"] == pytest.approx(0.25)
    assert len(ledger.entries("u1")) == 2
    assert len(ledger.entries()) == 3


def test_profile_is_updated_when_backed_by_repository():
    repository = InMemoryRepository()
    ledger = RewardLedger(repository)
    ledger.apply_rewards("u1", coins=30, stat_name="body", stat_points=0.5)
    ledger.apply_rewards("u1", coins=20, stat_name="body", stat_points=0.25)

    profile = repository.get_profile("u1")
    assert profile.coins == 50
    assert profile.stats["body"] == pytest.approx(0.75)


def test_unknown_stat_is_rejected():
    with pytest.raises(InvariantViolationError):
        RewardLedger().apply_rewards("u1", stat_name="luck", stat_points=1.0)


def test_negative_delta_is_rejected():
    ledger = RewardLedger()
    with pytest.raises(InvariantViolationError):
        ledger.apply_rewards("u1", coins=-5)
    assert ledger.entries() == []


def test_entry_keeps_reason_and_metadata():
    entry = RewardLedger().apply_rewards("u1", coins=5, reason_code="gate_task", metadata={"gate": "core"})
    assert entry.reason_code == "gate_task"
    assert entry.metadata == {"gate": "core"}
