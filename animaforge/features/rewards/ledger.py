"""
Reward ledger.

Append-only record of reward deltas. The engines only compute deltas; the
ledger owns balances. When constructed with a repository it also folds each
entry into the user's persisted UserProfile.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from animaforge.core.errors import InvariantViolationError
from animaforge.core.logging import log_event
from animaforge.models.identity import UserProfile
from animaforge.persistence.base import Repository

STAT_NAMES = ("body", "mind", "soul", "will")


@dataclass(frozen=True)
class LedgerEntry:
    user_id: str
    reason_code: str
    coins: int = 0
    stars: int = 0
    stat_name: Optional[str] = None
    stat_points: float = 0.0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, object] = field(default_factory=dict)


class RewardLedger:
    """Accumulates reward deltas per user."""

    def __init__(self, repository: Optional[Repository] = None):
        self._repository = repository
        self._entries: List[LedgerEntry] = []

    def apply_rewards(
        self,
        user_id: str,
        coins: int = 0,
        stat_name: Optional[str] = None,
        stat_points: float = 0.0,
        stars: int = 0,
        *,
        reason_code: str = "reward",
        metadata: Optional[Dict[str, object]] = None,
    ) -> LedgerEntry:
        if stat_name is not None and stat_name not in STAT_NAMES:
            raise InvariantViolationError(f"Unknown stat: {stat_name}", code="unknown_stat")
        if coins < 0 or stars < 0 or stat_points < 0:
            raise InvariantViolationError("Reward deltas must not be negative")

        entry = LedgerEntry(
            user_id=user_id,
            reason_code=reason_code,
            coins=coins,
            stars=stars,
            stat_name=stat_name if stat_points else None,
            stat_points=stat_points,
            metadata=metadata or {},
        )

        if self._repository is not None:
            profile = self._repository.get_profile(user_id) or UserProfile(id=user_id)
            profile.coins += coins
            profile.stars += stars
            if entry.stat_name:
                profile.stats[entry.stat_name] = profile.stats.get(entry.stat_name, 0.0) + stat_points
            self._repository.save_profile(profile)

        self._entries.append(entry)
        log_event(
            "info",
            "rewards.applied",
            user_id=user_id,
            event_type=reason_code,
            extra={"coins": coins, "stars": stars, "stat_name": entry.stat_name, "stat_points": stat_points, **entry.metadata},
        )
        return entry

    def entries(self, user_id: Optional[str] = None) -> List[LedgerEntry]:
        return [e for e in self._entries if user_id is None or e.user_id == user_id]

    def balance(self, user_id: str) -> Dict[str, float]:
        totals: Dict[str, float] = {"coins": 0, "stars": 0, **{name: 0.0 for name in STAT_NAMES}}
        for entry in self.entries(user_id):
            totals["coins"] += entry.coins
            totals["stars"] += entry.stars
            if entry.stat_name:
                totals[entry.stat_name] += entry.stat_points
        return totals
