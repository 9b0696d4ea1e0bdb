from __future__ import annotations

import copy
import logging
from typing import Dict, Optional

from animaforge.core.errors import NotFoundError, PersistenceError
from animaforge.core.optimistic import InFlightGuard
from animaforge.features.accrual.engine import AccrualEngine
from animaforge.features.accrual.levels import get_level_config
from animaforge.features.rewards.ledger import RewardLedger
from animaforge.models.progress import AccrualResult, LevelProgress
from animaforge.persistence.base import Repository

logger = logging.getLogger("animaforge")


class AccrualService:
    """Loads or lazily creates LevelProgress, accrues, persists, then pays out."""

    def __init__(self, repository: Repository, ledger: RewardLedger, guard: Optional[InFlightGuard] = None):
        self._repository = repository
        self._ledger = ledger
        self._guard = guard or InFlightGuard()

    def get_level_progress(self, identity_id: str) -> LevelProgress:
        identity = self._require_identity(identity_id)
        return self._repository.get_level_progress(identity.user_id, identity.id, identity.level) or LevelProgress(
            user_id=identity.user_id, identity_id=identity.id, level=identity.level
        )

    def get_level_info(self, identity_id: str) -> Dict[str, object]:
        """The identity's current tempering level: its config, trial and accrued gates."""
        identity = self._require_identity(identity_id)
        config = get_level_config(identity.level)
        progress = self.get_level_progress(identity_id)
        return {
            "identity_id": identity.id,
            "config": config.to_dict(),
            "progress": progress.to_dict(),
            "remaining_points": max(config.main_stat_limit - progress.total_points_earned, 0.0),
        }

    def complete_gate_task(self, identity_id: str, gate: str) -> AccrualResult:
        """
        Record one completed task in `gate` at the identity's current level.

        The level progress is saved before the payout. If the payout cannot be
        persisted the saved progress is put back and the error propagates, so
        a retry accrues the same points again.
        """
        with self._guard.hold(identity_id):
            identity = self._require_identity(identity_id)
            config = get_level_config(identity.level)
            progress = self.get_level_progress(identity_id)
            snapshot = copy.deepcopy(progress)

            result = AccrualEngine.accrue(progress, gate, config)
            saved = result.points_to_award > 0
            if saved:
                self._repository.save_level_progress(progress)

            try:
                self._ledger.apply_rewards(
                    identity.user_id,
                    coins=config.base_coins,
                    stat_name="body",
                    stat_points=result.points_to_award,
                    reason_code="gate_task",
                    metadata={"identity_id": identity_id, "gate": gate, "level": identity.level},
                )
            except PersistenceError:
                if saved:
                    self._repository.save_level_progress(snapshot)
                logger.warning("accrual.rolled_back", extra={"identity_id": identity_id, "gate": gate})
                raise

            logger.info(
                "accrual.task_completed",
                extra={
                    "user_id": identity.user_id,
                    "identity_id": identity_id,
                    "gate": gate,
                    "points": result.points_to_award,
                },
            )
            return result

    def _require_identity(self, identity_id: str):
        identity = self._repository.get_identity(identity_id)
        if identity is None:
            raise NotFoundError(f"Identity {identity_id} not found", code="identity_not_found")
        return identity
