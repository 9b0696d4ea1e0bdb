from datetime import date

import pytest

from animaforge.features.chronos.engine import ChronosEngine
from animaforge.models.chronos import DailyPathProgress, DailyTaskState, Quest
from animaforge.models.identity import Identity, UserProfile

TODAY = date(2025, 12, 25)
YESTERDAY = date(2025, 12, 24)


def _yesterday_progress(identity_id, percentage):
    return DailyPathProgress(
        user_id="u1", identity_id=identity_id, date=YESTERDAY.isoformat(),
        tasks_total=100, tasks_completed=percentage, percentage=percentage,
        status="COMPLETED" if percentage >= 100 else "PENDING",
    )


def test_format_date_for_quest():
    assert ChronosEngine.format_date_for_quest(TODAY) == "Dec 25"
    assert ChronosEngine.format_date_for_quest(date(2026, 1, 3)) == "Jan 3"


@pytest.mark.parametrize("completed,total,expected", [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 2, 50), (3, 3, 100)])
def test_completion_percentage(completed, total, expected):
    assert ChronosEngine.completion_percentage(completed, total) == expected


def test_should_reset_once_per_day():
    assert ChronosEngine.should_reset(UserProfile(id="u1"), TODAY)
    assert not ChronosEngine.should_reset(UserProfile(id="u1", last_reset_date="2025-12-25"), TODAY)


class TestEvaluateStreak:
    def test_full_yesterday_keeps_streak(self):
        identity = Identity(id="i1", user_id="u1", current_streak=4)
        evaluation = ChronosEngine.evaluate_streak(identity, _yesterday_progress("i1", 100))
        assert evaluation.new_streak == 4
        assert not evaluation.was_reset

    def test_ninety_nine_percent_resets(self):
        identity = Identity(id="i1", user_id="u1", current_streak=4)
        evaluation = ChronosEngine.evaluate_streak(identity, _yesterday_progress("i1", 99))
        assert evaluation.new_streak == 0
        assert evaluation.was_reset

    def test_missing_yesterday_resets(self):
        identity = Identity(id="i1", user_id="u1", current_streak=2)
        assert ChronosEngine.evaluate_streak(identity, None).was_reset


class TestQuestMigration:
    def test_recurring_quest_returns_to_today(self):
        quest = Quest(id="q1", title="Stretch", is_recurring=True, status="completed", date="Dec 24")
        migrated = ChronosEngine.migrate_quest(quest, "Dec 25")
        assert (migrated.status, migrated.date) == ("today", "Dec 25")

    def test_open_one_off_quest_keeps_status_and_moves_date(self):
        quest = Quest(id="q2", title="Call mom", is_recurring=False, status="backlog", date="Dec 24")
        migrated = ChronosEngine.migrate_quest(quest, "Dec 25")
        assert (migrated.status, migrated.date) == ("backlog", "Dec 25")

    def test_completed_one_off_quest_is_untouched(self):
        quest = Quest(id="q3", title="Taxes", is_recurring=False, status="completed", date="Dec 24")
        assert ChronosEngine.migrate_quest(quest, "Dec 25") == quest


class TestTaskCompletion:
    def test_streak_increments_only_on_reaching_full(self):
        identity = Identity(id="i1", user_id="u1", current_streak=2)
        first = ChronosEngine.handle_task_completion(identity, None, "t1", 2, "2025-12-25")
        assert first.progress.percentage == 50
        assert not first.streak_incremented

        second = ChronosEngine.handle_task_completion(identity, first.progress, "t2", 2, "2025-12-25")
        assert second.progress.status == "COMPLETED"
        assert second.streak_incremented
        assert second.new_streak == 3

        again = ChronosEngine.handle_task_completion(identity, second.progress, "t2", 2, "2025-12-25")
        assert not again.newly_completed
        assert not again.streak_incremented
        assert again.new_streak == 2

    def test_grown_board_filled_again_does_not_count_twice(self):
        identity = Identity(id="i1", user_id="u1", current_streak=0)
        full = ChronosEngine.handle_task_completion(identity, None, "t1", 1, "2025-12-25")
        assert full.streak_incremented
        assert full.progress.streak_counted

        identity.current_streak = full.new_streak
        grown = ChronosEngine.handle_task_completion(identity, full.progress, "t1", 2, "2025-12-25")
        assert grown.progress.status == "PENDING"
        refilled = ChronosEngine.handle_task_completion(identity, grown.progress, "t2", 2, "2025-12-25")

        assert refilled.progress.status == "COMPLETED"
        assert not refilled.streak_incremented
        assert refilled.new_streak == 1
        assert refilled.progress.streak_counted


class TestPlanReset:
    def _plan(self, profile=None, yesterday=None, quests=(), task_states=None):
        identities = [
            Identity(id="i1", user_id="u1", current_streak=5),
            Identity(id="i2", user_id="u1", current_streak=3),
        ]
        return ChronosEngine.plan_reset(
            profile or UserProfile(id="u1", coins=120, stars=2),
            identities,
            yesterday if yesterday is not None else {"i1": _yesterday_progress("i1", 100), "i2": _yesterday_progress("i2", 99)},
            list(quests),
            task_states or {"i1": DailyTaskState(completed_task_ids={"a", "b"})},
            {"i1": 2, "i2": 4},
            TODAY,
            YESTERDAY,
        )

    def test_already_reset_returns_none(self):
        assert self._plan(profile=UserProfile(id="u1", last_reset_date="2025-12-25")) is None

    def test_streaks_record_and_cleared_tasks(self):
        plan = self._plan()
        assert plan.changed_streaks == {"i2": 0}
        assert not plan.evaluations["i1"].was_reset
        stats = plan.daily_record.path_stats["i1"]
        assert (stats.completed_count, stats.total_count, stats.streak_before, stats.streak_after) == (2, 2, 5, 5)
        assert plan.daily_record.date == "2025-12-24"
        assert all(state.is_empty() for state in plan.cleared_task_states.values())

    def test_balances_are_untouched(self):
        plan = self._plan()
        assert plan.profile.last_reset_date == "2025-12-25"
        assert (plan.profile.coins, plan.profile.stars) == (120, 2)

    def test_quests_move_to_board_date(self):
        quests = [
            Quest(id="q1", title="Stretch", is_recurring=True, status="completed", date="Dec 24"),
            Quest(id="q2", title="Taxes", is_recurring=False, status="completed", date="Dec 24"),
        ]
        plan = self._plan(quests=quests)
        assert plan.daily_record.quests_completed == 2
        assert [(q.status, q.date) for q in plan.quests] == [("today", "Dec 25"), ("completed", "Dec 24")]
