import pytest

from animaforge.core.errors import ConflictError, PersistenceError
from animaforge.features.rewards.ledger import RewardLedger
from animaforge.features.streaks.service import (
    StreakService,
    aggregate_rewards,
    calculate_will_award,
    validate_streak_state,
)
from animaforge.models.streak import MilestoneReward, StreakState
from animaforge.persistence.memory import InMemoryRepository
from animaforge.tests.mocks import FlakyRepository


def _complete_days(service, clock, days, user_id="u1"):
    result = None
    for _ in range(days):
        result = service.process_daily_completion(user_id)
        clock.advance(days=1)
    return result


def test_incomplete_day_changes_nothing(services):
    result = services.streaks.process_daily_completion("u1", all_tasks_complete=False)
    assert not result.success
    assert services.streaks.get_state("u1").current_streak == 0
    assert services.ledger.entries("u1") == []


def test_milestone_pays_coins_and_will(services, repository, clock):
    result = _complete_days(services.streaks, clock, 3)

    assert result.success
    assert result.increment.milestone_reached
    assert repository.get_streak_state("u1").current_streak == 3
    balance = services.ledger.balance("u1")
    assert balance["coins"] == 50
    assert balance["will"] == pytest.approx(0.25)
    assert [e.reason_code for e in services.ledger.entries("u1")] == ["streak_milestone", "streak_will"]


def test_same_day_completion_counts_once(services, repository, clock):
    first = services.streaks.process_daily_completion("u1")
    again = services.streaks.process_daily_completion("u1")
    third = services.streaks.process_daily_completion("u1")

    assert first.success
    assert not again.success and not third.success
    assert not third.increment.milestone_reached
    stored = repository.get_streak_state("u1")
    assert stored.current_streak == 1
    assert stored.last_completed_on == clock.today()
    assert services.ledger.entries("u1") == []

    clock.advance(days=1)
    assert services.streaks.process_daily_completion("u1").increment.new_state.current_streak == 2


def test_level_up_refused_before_milestone(services):
    services.streaks.process_daily_completion("u1")
    result = services.streaks.process_level_up("u1")
    assert not result.success
    assert result.new_level == 1
    assert services.streaks.get_state("u1").current_streak == 1


def test_level_up_after_milestone(services, repository, clock):
    _complete_days(services.streaks, clock, 3)

    result = services.streaks.process_level_up("u1")

    assert result.success
    assert result.new_level == 2
    assert result.history_entry == {"level": 1, "max_streak": 3, "will_earned": 0.25}
    stored = repository.get_streak_state("u1")
    assert stored.current_level == 2
    assert stored.current_streak == 0
    assert stored.streak_history[0].completed_at == clock.now()


def test_break_keeps_level_and_will(services, clock):
    _complete_days(services.streaks, clock, 3)
    state = services.streaks.process_streak_break("u1")
    assert state.current_streak == 0
    assert state.max_streak == 3
    assert state.total_will_earned == pytest.approx(0.25)


def test_failed_save_rolls_back_local_state(clock):
    repository = FlakyRepository()
    service = StreakService(repository, RewardLedger(), clock=clock)
    service.process_daily_completion("u1")
    clock.advance(days=1)

    repository.fail("save_streak_state")
    with pytest.raises(PersistenceError):
        service.process_daily_completion("u1")

    assert service.get_state("u1").current_streak == 1
    repository.heal()
    assert service.process_daily_completion("u1").increment.new_state.current_streak == 2


def test_state_is_read_after_the_guard_is_taken(clock):
    """Calls landing while a write holds the user's key are rejected before reading state."""

    def competing_write():
        with pytest.raises(ConflictError):
            service.process_daily_completion("u1")
        with pytest.raises(ConflictError):
            service.process_level_up("u1")
        with pytest.raises(ConflictError):
            service.process_streak_break("u1")

    class InterruptingRepository(InMemoryRepository):
        def save_streak_state(self, state):
            competing_write()
            super().save_streak_state(state)

    interrupting = InterruptingRepository()
    service = StreakService(interrupting, RewardLedger(), clock=clock)

    result = service.process_daily_completion("u1")

    assert result.success
    assert interrupting.get_streak_state("u1").current_streak == 1


def test_progression_summary(services):
    services.streaks.process_daily_completion("u1")
    summary = services.streaks.get_progression_summary("u1")
    assert summary["level"] == 1
    assert summary["streak"] == 1
    assert summary["next_milestone"] == 3
    assert summary["visual_state"]["stage"] == "ember"


def test_aggregate_rewards_sums_both():
    totals = aggregate_rewards(MilestoneReward(150, 0, 0.8), MilestoneReward(50, 0, 0.15, ticket="t1"))
    assert totals == {"coins": 200, "stars": 0, "ticket": "t1"}
    assert aggregate_rewards(None, None) == {"coins": 0, "stars": 0, "ticket": None}


def test_calculate_will_award_reports_capping():
    award = calculate_will_award(14.0, 2.0)
    assert award.capped
    assert award.actual_gain == pytest.approx(1.0)
    assert award.new_total == pytest.approx(15.0)


def test_validate_streak_state():
    ok, errors = validate_streak_state(StreakState(user_id="u1", current_level=11))
    assert ok and errors == []
    ok, errors = validate_streak_state(
        StreakState(user_id="u1", current_streak=-1, current_level=0, total_will_earned=16)
    )
    assert not ok
    assert len(errors) == 3
