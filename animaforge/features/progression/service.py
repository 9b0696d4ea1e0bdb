"""
Progression service.

Keeps each identity's Progress in step with its completion history. Every
mutation runs under the per-identity in-flight guard and follows
snapshot -> apply locally -> persist -> roll back on PersistenceError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from animaforge.core.clock import Clock, SystemClock
from animaforge.core.errors import InvariantViolationError, NotFoundError
from animaforge.core.logging import log_event
from animaforge.core.optimistic import InFlightGuard, OptimisticStore
from animaforge.features.progression.projector import Projection, project_history, refresh_daily_fields
from animaforge.features.tiers.ladder import (
    FINAL_TIER,
    best_identity,
    compare_tiers,
    previous_tier,
    required_days_for_tier,
)
from animaforge.models.identity import HistoryEntry, Identity, Progress
from animaforge.persistence.base import Repository

logger = logging.getLogger("animaforge")


@dataclass(frozen=True)
class ToggleResult:
    identity_id: str
    day: date
    completed: bool
    progress: Progress


class ProgressionService:
    def __init__(
        self,
        repository: Repository,
        clock: Optional[Clock] = None,
        final_tier: str = FINAL_TIER,
        guard: Optional[InFlightGuard] = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._final_tier = final_tier
        self._guard = guard or InFlightGuard()
        self._local: OptimisticStore[Progress] = OptimisticStore()

    # Reads -------------------------------------------------------------
    def get_identity(self, identity_id: str) -> Identity:
        identity = self._repository.get_identity(identity_id)
        if identity is None:
            raise NotFoundError(f"Identity {identity_id} not found", code="identity_not_found")
        return identity

    def get_progress(self, identity_id: str) -> Progress:
        """
        Progress as of today.

        The local copy is served only while a mutation for the identity is in
        flight. Otherwise the stored row is read and completed_today and
        streak_days are re-derived from history for the clock's today.
        """
        if self._guard.is_in_flight(identity_id):
            cached = self._local.get(identity_id)
            if cached is not None:
                return cached
        progress = self._repository.get_progress(identity_id)
        if progress is None:
            raise NotFoundError(f"Progress for {identity_id} not found", code="progress_not_found")
        history = self._repository.get_history(identity_id)
        progress = refresh_daily_fields(progress, history, self._clock.today())
        self._local.put(identity_id, progress)
        return progress

    def get_history(self, identity_id: str) -> List[HistoryEntry]:
        self.get_identity(identity_id)
        return self._repository.get_history(identity_id)

    def best_identity(self, user_id: str) -> Optional[Identity]:
        return best_identity(self._repository.list_identities(user_id))

    # Mutations ---------------------------------------------------------
    def create_identity(self, identity_id: str, user_id: str, name: str = "") -> Identity:
        identity = Identity(id=identity_id, user_id=user_id, name=name)
        self._repository.save_identity(identity)
        self._repository.save_progress(Progress(identity_id=identity_id))
        logger.info("identity.created", extra={"user_id": user_id, "identity_id": identity_id})
        return identity

    def deactivate_identity(self, identity_id: str) -> Identity:
        identity = self.get_identity(identity_id)
        identity.is_active = False
        self._repository.save_identity(identity)
        return identity

    def recompute(self, identity_id: str) -> Progress:
        """Re-derive Identity and Progress from the stored history."""
        with self._guard.hold(identity_id):
            identity = self.get_identity(identity_id)
            history = self._repository.get_history(identity_id)
            return self._apply(identity, history, pending=None)

    def toggle_today(self, identity_id: str) -> ToggleResult:
        """Complete today's entry, or reverse it if it is already complete."""
        today = self._clock.today()
        with self._guard.hold(identity_id):
            identity = self.get_identity(identity_id)
            history = self._repository.get_history(identity_id)
            already = any(entry.date == today and entry.completed for entry in history)
            entry = HistoryEntry(date=today, completed=not already)
            progress = self._apply(identity, history, pending=entry)
        return ToggleResult(identity_id=identity_id, day=today, completed=entry.completed, progress=progress)

    def set_date_completion(self, identity_id: str, day: date, completed: bool) -> Progress:
        """Calendar edit: overwrite the entry for `day`, then re-project."""
        if day > self._clock.today():
            raise InvariantViolationError(f"Cannot record completion for future date {day.isoformat()}")
        with self._guard.hold(identity_id):
            identity = self.get_identity(identity_id)
            history = self._repository.get_history(identity_id)
            return self._apply(identity, history, pending=HistoryEntry(date=day, completed=completed))

    def debug_add_days(self, identity_id: str, days: int) -> Progress:
        """Backfill `days` completed entries before the earliest recorded day."""
        if days <= 0:
            raise InvariantViolationError("days must be positive")
        with self._guard.hold(identity_id):
            identity = self.get_identity(identity_id)
            history = self._repository.get_history(identity_id)
            start = min((entry.date for entry in history), default=self._clock.today() + timedelta(days=1))
            for offset in range(1, days + 1):
                self._repository.append_or_update_history_entry(identity_id, start - timedelta(days=offset), True)
            history = self._repository.get_history(identity_id)
            logger.warning("debug.days_added", extra={"identity_id": identity_id, "days": days})
            return self._apply(identity, history, pending=None)

    def debug_rollback_tier(self, identity_id: str) -> Identity:
        """The only path that lowers a tier. Level and days restart at the lower tier."""
        with self._guard.hold(identity_id):
            identity = self.get_identity(identity_id)
            lowered = previous_tier(identity.tier)
            identity.tier = lowered
            identity.level = 1
            identity.days_completed = 0
            identity.required_days_per_level = required_days_for_tier(lowered)
            progress = self.get_progress(identity_id)
            rolled = Progress(
                identity_id=identity_id,
                tier=lowered,
                level=1,
                days_completed=0,
                required_days_per_level=identity.required_days_per_level,
                completed_today=progress.completed_today,
                streak_days=progress.streak_days,
            )
            with self._local.update(identity_id, rolled):
                self._repository.save_identity(identity)
                self._repository.save_progress(rolled)
            logger.warning("debug.tier_rolled_back", extra={"identity_id": identity_id, "tier": lowered})
            return identity

    # Internals ---------------------------------------------------------
    def _apply(self, identity: Identity, history: List[HistoryEntry], pending: Optional[HistoryEntry]) -> Progress:
        replay = list(history) + ([pending] if pending else [])
        projection = project_history(replay, self._clock.today(), self._final_tier)
        progress = self._progress_from(identity, projection)

        with self._local.update(identity.id, progress):
            if pending is not None:
                self._repository.append_or_update_history_entry(identity.id, pending.date, pending.completed)
            self._repository.save_identity(identity)
            self._repository.save_progress(progress)

        log_event(
            "info",
            "progression.projected",
            user_id=identity.user_id,
            identity_id=identity.id,
            event_type="progression.projected",
            extra={
                "tier": progress.tier,
                "level": progress.level,
                "streak": progress.streak_days,
            },
        )
        return progress

    def _progress_from(self, identity: Identity, projection: Projection) -> Progress:
        """Fold a projection into `identity` (in place) and build its Progress."""
        if compare_tiers(projection.tier, identity.tier) >= 0:
            identity.tier = projection.tier
            identity.level = projection.level
            identity.days_completed = projection.days_completed
            identity.required_days_per_level = projection.required_days_per_level
        else:
            logger.warning(
                "progression.tier_regression_blocked",
                extra={"identity_id": identity.id, "tier": identity.tier, "projected": projection.tier},
            )
        return Progress(
            identity_id=identity.id,
            tier=identity.tier,
            level=identity.level,
            days_completed=identity.days_completed,
            required_days_per_level=identity.required_days_per_level,
            completed_today=projection.completed_today,
            streak_days=projection.streak_days,
        )
