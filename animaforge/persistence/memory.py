"""
In-memory repository.

Every read and write copies, so callers holding a snapshot never observe
later mutations through shared references.
"""

from __future__ import annotations

import copy
from datetime import date
from typing import Dict, List, Optional, Tuple

from animaforge.models.chronos import DailyPathProgress, DailyRecord, DailyTaskState, Quest
from animaforge.models.identity import HistoryEntry, Identity, Progress, UserProfile
from animaforge.models.market import MarketState
from animaforge.models.progress import LevelProgress
from animaforge.models.streak import StreakState
from animaforge.persistence.base import Repository


class InMemoryRepository(Repository):
    def __init__(self):
        self._identities: Dict[str, Identity] = {}
        self._progress: Dict[str, Progress] = {}
        self._history: Dict[str, Dict[date, bool]] = {}
        self._level_progress: Dict[Tuple[str, str, int], LevelProgress] = {}
        self._streaks: Dict[str, StreakState] = {}
        self._market: Dict[Tuple[str, str], MarketState] = {}
        self._profiles: Dict[str, UserProfile] = {}
        self._daily_progress: Dict[Tuple[str, str], DailyPathProgress] = {}
        self._quests: Dict[str, List[Quest]] = {}
        self._task_states: Dict[str, DailyTaskState] = {}
        self._daily_records: Dict[Tuple[str, str], DailyRecord] = {}

    def get_identity(self, identity_id: str) -> Optional[Identity]:
        return copy.deepcopy(self._identities.get(identity_id))

    def save_identity(self, identity: Identity) -> None:
        self._identities[identity.id] = copy.deepcopy(identity)

    def list_identities(self, user_id: str, *, active_only: bool = True) -> List[Identity]:
        return [
            copy.deepcopy(identity)
            for identity in self._identities.values()
            if identity.user_id == user_id and (identity.is_active or not active_only)
        ]

    def get_progress(self, identity_id: str) -> Optional[Progress]:
        return copy.deepcopy(self._progress.get(identity_id))

    def save_progress(self, progress: Progress) -> None:
        self._progress[progress.identity_id] = copy.deepcopy(progress)

    def get_history(self, identity_id: str) -> List[HistoryEntry]:
        entries = self._history.get(identity_id, {})
        return [HistoryEntry(date=day, completed=done) for day, done in sorted(entries.items())]

    def append_or_update_history_entry(self, identity_id: str, day: date, completed: bool) -> None:
        self._history.setdefault(identity_id, {})[day] = completed

    def get_level_progress(self, user_id: str, identity_id: str, level: int) -> Optional[LevelProgress]:
        return copy.deepcopy(self._level_progress.get((user_id, identity_id, level)))

    def save_level_progress(self, progress: LevelProgress) -> None:
        key = (progress.user_id, progress.identity_id, progress.level)
        self._level_progress[key] = copy.deepcopy(progress)

    def get_streak_state(self, user_id: str) -> Optional[StreakState]:
        return copy.deepcopy(self._streaks.get(user_id))

    def save_streak_state(self, state: StreakState) -> None:
        self._streaks[state.user_id] = copy.deepcopy(state)

    def get_market_state(self, user_id: str, item_id: str) -> Optional[MarketState]:
        return copy.deepcopy(self._market.get((user_id, item_id)))

    def save_market_state(self, state: MarketState) -> None:
        self._market[(state.user_id, state.ticket_id)] = copy.deepcopy(state)

    def list_market_states(self, user_id: str) -> List[MarketState]:
        return [copy.deepcopy(s) for (uid, _), s in self._market.items() if uid == user_id]

    def delete_market_state(self, user_id: str, item_id: str) -> None:
        self._market.pop((user_id, item_id), None)

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return copy.deepcopy(self._profiles.get(user_id))

    def save_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.id] = copy.deepcopy(profile)

    def get_daily_path_progress(self, identity_id: str, day: str) -> Optional[DailyPathProgress]:
        return copy.deepcopy(self._daily_progress.get((identity_id, day)))

    def save_daily_path_progress(self, progress: DailyPathProgress) -> None:
        self._daily_progress[(progress.identity_id, progress.date)] = copy.deepcopy(progress)

    def list_quests(self, user_id: str) -> List[Quest]:
        return copy.deepcopy(self._quests.get(user_id, []))

    def save_quests(self, user_id: str, quests: List[Quest]) -> None:
        self._quests[user_id] = copy.deepcopy(quests)

    def get_task_states(self, identity_ids: List[str]) -> Dict[str, DailyTaskState]:
        return {
            identity_id: copy.deepcopy(self._task_states.get(identity_id, DailyTaskState()))
            for identity_id in identity_ids
        }

    def save_task_state(self, identity_id: str, state: DailyTaskState) -> None:
        self._task_states[identity_id] = copy.deepcopy(state)

    def save_daily_record(self, record: DailyRecord) -> None:
        self._daily_records[(record.user_id, record.date)] = copy.deepcopy(record)

    def get_daily_record(self, user_id: str, day: str) -> Optional[DailyRecord]:
        return copy.deepcopy(self._daily_records.get((user_id, day)))
