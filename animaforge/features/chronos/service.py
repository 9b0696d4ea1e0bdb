from __future__ import annotations

import copy
import logging
from typing import Callable, Dict, List, Optional

from animaforge.core.clock import Clock, SystemClock
from animaforge.core.errors import NotFoundError, PersistenceError
from animaforge.core.logging import log_event
from animaforge.core.optimistic import InFlightGuard
from animaforge.features.chronos.engine import ChronosEngine
from animaforge.features.progression.projector import refresh_daily_fields
from animaforge.models.chronos import DailyPathProgress, ResetResult, TaskCompletionOutcome
from animaforge.models.identity import UserProfile
from animaforge.persistence.base import Repository

logger = logging.getLogger("animaforge")


class ChronosService:
    """
    Runs the daily reset against the repository and records task completions.

    Each reset step persists independently; a failing step is reported in
    ResetResult.errors and the remaining steps still run. Only a failure to
    stamp last_reset_date marks the reset unsuccessful, so it is retried.
    """

    def __init__(
        self,
        repository: Repository,
        clock: Optional[Clock] = None,
        streak_service=None,
        guard: Optional[InFlightGuard] = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._streak_service = streak_service
        self._guard = guard or InFlightGuard()

    def execute_daily_reset(self, user_id: str, task_totals: Optional[Dict[str, int]] = None) -> ResetResult:
        today = self._clock.today()
        yesterday = self._clock.yesterday()

        with self._guard.hold(f"reset:{user_id}"):
            profile = self._repository.get_profile(user_id)
            if profile is None:
                raise NotFoundError(f"Profile {user_id} not found", code="profile_not_found")

            identities = self._repository.list_identities(user_id)
            yesterday_progress = {
                identity.id: self._repository.get_daily_path_progress(identity.id, yesterday.isoformat())
                for identity in identities
            }
            totals = dict(task_totals or {})
            for identity_id, progress in yesterday_progress.items():
                if identity_id not in totals and progress is not None:
                    totals[identity_id] = progress.tasks_total

            plan = ChronosEngine.plan_reset(
                profile,
                identities,
                yesterday_progress,
                self._repository.list_quests(user_id),
                self._repository.get_task_states([identity.id for identity in identities]),
                totals,
                today,
                yesterday,
            )
            if plan is None:
                return ResetResult(success=True, skipped=True)

            result = ResetResult(success=False)
            for identity in identities:
                evaluation = plan.evaluations[identity.id]
                (result.streaks_reset if evaluation.was_reset else result.streaks_maintained).append(identity.id)
                if identity.id in plan.changed_streaks:
                    identity.current_streak = plan.changed_streaks[identity.id]
                    self._step(result, f"update streak for {identity.id}", self._repository.save_identity, identity)
                self._step(result, f"refresh progress for {identity.id}", self._refresh_progress, identity.id, today)
                result.paths_processed += 1

            if self._step(result, "save daily record", self._repository.save_daily_record, plan.daily_record):
                result.daily_record = plan.daily_record

            for identity_id, state in plan.cleared_task_states.items():
                self._step(result, f"clear tasks for {identity_id}", self._repository.save_task_state, identity_id, state)

            if self._step(result, "migrate quests", self._repository.save_quests, user_id, plan.quests):
                result.quests_processed = len(plan.quests)

            if self._step(result, "stamp reset date", self._repository.save_profile, plan.profile):
                result.success = True

        log_event(
            "info" if result.success else "warning",
            "chronos.reset_completed",
            user_id=user_id,
            event_type="chronos.reset",
            extra={
                "paths": result.paths_processed,
                "quests": result.quests_processed,
                "streaks_reset": len(result.streaks_reset),
                "errors": len(result.errors),
            },
        )
        return result

    def ensure_profile(self, user_id: str) -> UserProfile:
        profile = self._repository.get_profile(user_id)
        if profile is None:
            profile = UserProfile(id=user_id)
            self._repository.save_profile(profile)
        return profile

    def get_today_progress(self, identity_id: str) -> Optional[DailyPathProgress]:
        return self._repository.get_daily_path_progress(identity_id, self._clock.today().isoformat())

    def complete_task(self, identity_id: str, task_id: str, total_tasks: int) -> TaskCompletionOutcome:
        """
        Record a task for today; the identity streak advances once, on reaching 100%.

        Writes run identity, task state, then daily progress. The daily progress
        carries streak_counted, so it goes last: if an earlier write fails the
        ones already made are undone and a retry counts the day again.
        """
        today = self._clock.today().isoformat()
        with self._guard.hold(identity_id):
            identity = self._repository.get_identity(identity_id)
            if identity is None:
                raise NotFoundError(f"Identity {identity_id} not found", code="identity_not_found")

            current = self._repository.get_daily_path_progress(identity_id, today)
            outcome = ChronosEngine.handle_task_completion(identity, current, task_id, total_tasks, today)
            state = self._repository.get_task_states([identity_id])[identity_id]

            undo: List[Callable[[], None]] = []
            try:
                if outcome.streak_incremented:
                    previous = copy.deepcopy(identity)
                    identity.current_streak = outcome.new_streak
                    identity.longest_streak = max(identity.longest_streak, outcome.new_streak)
                    self._repository.save_identity(identity)
                    undo.append(lambda: self._repository.save_identity(previous))

                previous_state = copy.deepcopy(state)
                state.completed_task_ids.add(task_id)
                self._repository.save_task_state(identity_id, state)
                undo.append(lambda: self._repository.save_task_state(identity_id, previous_state))

                self._repository.save_daily_path_progress(outcome.progress)
            except PersistenceError:
                self._undo(identity_id, undo)
                raise

        if outcome.streak_incremented and self._streak_service is not None and self._all_paths_complete(identity.user_id, today):
            self._streak_service.process_daily_completion(identity.user_id, all_tasks_complete=True)
        return outcome

    def _refresh_progress(self, identity_id: str, today) -> None:
        progress = self._repository.get_progress(identity_id)
        if progress is None:
            return
        history = self._repository.get_history(identity_id)
        self._repository.save_progress(refresh_daily_fields(progress, history, today))

    def _all_paths_complete(self, user_id: str, today: str) -> bool:
        for identity in self._repository.list_identities(user_id):
            progress = self._repository.get_daily_path_progress(identity.id, today)
            if progress is None or progress.status != "COMPLETED":
                return False
        return True

    @staticmethod
    def _undo(identity_id: str, steps: List[Callable[[], None]]) -> None:
        for step in reversed(steps):
            try:
                step()
            except PersistenceError as exc:
                logger.error("chronos.undo_failed", extra={"identity_id": identity_id, "error_code": exc.code})
        logger.warning("chronos.task_rolled_back", extra={"identity_id": identity_id})

    @staticmethod
    def _step(result: ResetResult, label: str, fn, *args) -> bool:
        try:
            fn(*args)
            return True
        except PersistenceError as exc:
            logger.error("chronos.step_failed", extra={"step": label, "error_code": exc.code})
            result.errors.append(f"Failed to {label}: {exc.message}")
            return False
