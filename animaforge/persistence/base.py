"""
Repository interface consumed by the services.

Reads return None when a record is absent; the services decide whether that
is a NotFoundError. Implementations wrap their own failures in
PersistenceError so callers can roll back optimistic state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional

from animaforge.models.chronos import DailyPathProgress, DailyRecord, DailyTaskState, Quest
from animaforge.models.identity import HistoryEntry, Identity, Progress, UserProfile
from animaforge.models.market import MarketState
from animaforge.models.progress import LevelProgress
from animaforge.models.streak import StreakState


class Repository(ABC):
    # Identities and progress
    @abstractmethod
    def get_identity(self, identity_id: str) -> Optional[Identity]: ...

    @abstractmethod
    def save_identity(self, identity: Identity) -> None: ...

    @abstractmethod
    def list_identities(self, user_id: str, *, active_only: bool = True) -> List[Identity]: ...

    @abstractmethod
    def get_progress(self, identity_id: str) -> Optional[Progress]: ...

    @abstractmethod
    def save_progress(self, progress: Progress) -> None: ...

    # Completion history
    @abstractmethod
    def get_history(self, identity_id: str) -> List[HistoryEntry]:
        """Entries ordered by date, one per date."""

    @abstractmethod
    def append_or_update_history_entry(self, identity_id: str, day: date, completed: bool) -> None: ...

    # Gate accrual
    @abstractmethod
    def get_level_progress(self, user_id: str, identity_id: str, level: int) -> Optional[LevelProgress]: ...

    @abstractmethod
    def save_level_progress(self, progress: LevelProgress) -> None: ...

    # Streak milestones
    @abstractmethod
    def get_streak_state(self, user_id: str) -> Optional[StreakState]: ...

    @abstractmethod
    def save_streak_state(self, state: StreakState) -> None: ...

    # Market
    @abstractmethod
    def get_market_state(self, user_id: str, item_id: str) -> Optional[MarketState]: ...

    @abstractmethod
    def save_market_state(self, state: MarketState) -> None: ...

    @abstractmethod
    def list_market_states(self, user_id: str) -> List[MarketState]: ...

    @abstractmethod
    def delete_market_state(self, user_id: str, item_id: str) -> None: ...

    # Daily boundary
    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[UserProfile]: ...

    @abstractmethod
    def save_profile(self, profile: UserProfile) -> None: ...

    @abstractmethod
    def get_daily_path_progress(self, identity_id: str, day: str) -> Optional[DailyPathProgress]: ...

    @abstractmethod
    def save_daily_path_progress(self, progress: DailyPathProgress) -> None: ...

    @abstractmethod
    def list_quests(self, user_id: str) -> List[Quest]: ...

    @abstractmethod
    def save_quests(self, user_id: str, quests: List[Quest]) -> None: ...

    @abstractmethod
    def get_task_states(self, identity_ids: List[str]) -> Dict[str, DailyTaskState]: ...

    @abstractmethod
    def save_task_state(self, identity_id: str, state: DailyTaskState) -> None: ...

    @abstractmethod
    def save_daily_record(self, record: DailyRecord) -> None: ...

    @abstractmethod
    def get_daily_record(self, user_id: str, day: str) -> Optional[DailyRecord]: ...
