"""
SQLAlchemy-backed repository.

Same contract as InMemoryRepository, durable across processes. Every call
runs in its own get_db_session() unit of work; driver and constraint
failures surface as PersistenceError.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, timezone
from functools import wraps
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from animaforge.core.database import (
    get_db_session,
    completion_history,
    daily_path_progress,
    daily_records,
    daily_task_states,
    identities,
    identity_progress,
    level_progress,
    market_states,
    quests,
    streak_states,
    user_profiles,
)
from animaforge.core.errors import PersistenceError
from animaforge.models.chronos import DailyPathProgress, DailyRecord, DailyTaskState, PathStats, Quest
from animaforge.models.identity import HistoryEntry, Identity, Progress, UserProfile
from animaforge.models.market import MarketState
from animaforge.models.progress import LevelProgress
from animaforge.models.streak import StreakHistoryEntry, StreakState
from animaforge.persistence.base import Repository


def _wrap_db_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"{fn.__name__} failed: {exc.__class__.__name__}") from exc
    return wrapper


def _upsert(session, table, keys: Dict[str, object], values: Dict[str, object]) -> None:
    condition = and_(*[table.c[name] == value for name, value in keys.items()])
    existing = session.execute(select(table).where(condition)).first()
    if existing is None:
        session.execute(insert(table).values(**keys, **values))
    else:
        session.execute(update(table).where(condition).values(**values))


def _as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class SqlRepository(Repository):
    """Repository over the tables declared in animaforge.core.database."""

    @_wrap_db_errors
    def get_identity(self, identity_id: str) -> Optional[Identity]:
        with get_db_session() as session:
            row = session.execute(select(identities).where(identities.c.id == identity_id)).first()
        return Identity(**row._mapping) if row else None

    @_wrap_db_errors
    def save_identity(self, identity: Identity) -> None:
        values = identity.to_dict()
        key = {"id": values.pop("id")}
        with get_db_session() as session:
            _upsert(session, identities, key, values)

    @_wrap_db_errors
    def list_identities(self, user_id: str, *, active_only: bool = True) -> List[Identity]:
        query = select(identities).where(identities.c.user_id == user_id)
        if active_only:
            query = query.where(identities.c.is_active.is_(True))
        with get_db_session() as session:
            rows = session.execute(query.order_by(identities.c.id)).fetchall()
        return [Identity(**row._mapping) for row in rows]

    @_wrap_db_errors
    def get_progress(self, identity_id: str) -> Optional[Progress]:
        with get_db_session() as session:
            row = session.execute(
                select(identity_progress).where(identity_progress.c.identity_id == identity_id)
            ).first()
        return Progress(**row._mapping) if row else None

    @_wrap_db_errors
    def save_progress(self, progress: Progress) -> None:
        values = progress.to_dict()
        key = {"identity_id": values.pop("identity_id")}
        with get_db_session() as session:
            _upsert(session, identity_progress, key, values)

    @_wrap_db_errors
    def get_history(self, identity_id: str) -> List[HistoryEntry]:
        with get_db_session() as session:
            rows = session.execute(
                select(completion_history.c.day, completion_history.c.completed)
                .where(completion_history.c.identity_id == identity_id)
                .order_by(completion_history.c.day)
            ).fetchall()
        return [HistoryEntry(date=date.fromisoformat(row.day), completed=bool(row.completed)) for row in rows]

    @_wrap_db_errors
    def append_or_update_history_entry(self, identity_id: str, day: date, completed: bool) -> None:
        with get_db_session() as session:
            _upsert(
                session,
                completion_history,
                {"identity_id": identity_id, "day": day.isoformat()},
                {"completed": completed},
            )

    @_wrap_db_errors
    def get_level_progress(self, user_id: str, identity_id: str, level: int) -> Optional[LevelProgress]:
        with get_db_session() as session:
            row = session.execute(
                select(level_progress).where(
                    and_(
                        level_progress.c.user_id == user_id,
                        level_progress.c.identity_id == identity_id,
                        level_progress.c.level == level,
                    )
                )
            ).first()
        if row is None:
            return None
        return LevelProgress(
            user_id=row.user_id,
            identity_id=row.identity_id,
            level=row.level,
            gate_progress=dict(row.gate_progress),
            total_points_earned=row.total_points_earned,
        )

    @_wrap_db_errors
    def save_level_progress(self, progress: LevelProgress) -> None:
        with get_db_session() as session:
            _upsert(
                session,
                level_progress,
                {"user_id": progress.user_id, "identity_id": progress.identity_id, "level": progress.level},
                {"gate_progress": dict(progress.gate_progress), "total_points_earned": progress.total_points_earned},
            )

    @_wrap_db_errors
    def get_streak_state(self, user_id: str) -> Optional[StreakState]:
        with get_db_session() as session:
            row = session.execute(select(streak_states).where(streak_states.c.user_id == user_id)).first()
        if row is None:
            return None
        history = [
            StreakHistoryEntry(
                level=item["level"],
                max_streak=item["max_streak"],
                completed_at=datetime.fromisoformat(item["completed_at"]) if item.get("completed_at") else None,
                will_earned=item.get("will_earned", 0.0),
            )
            for item in row.streak_history
        ]
        return StreakState(
            user_id=row.user_id,
            current_streak=row.current_streak,
            max_streak=row.max_streak,
            current_level=row.current_level,
            total_will_earned=row.total_will_earned,
            streak_history=history,
            last_completed_on=date.fromisoformat(row.last_completed_on) if row.last_completed_on else None,
        )

    @_wrap_db_errors
    def save_streak_state(self, state: StreakState) -> None:
        history = [
            {
                "level": entry.level,
                "max_streak": entry.max_streak,
                "completed_at": entry.completed_at.isoformat() if entry.completed_at else None,
                "will_earned": entry.will_earned,
            }
            for entry in state.streak_history
        ]
        with get_db_session() as session:
            _upsert(
                session,
                streak_states,
                {"user_id": state.user_id},
                {
                    "current_streak": state.current_streak,
                    "max_streak": state.max_streak,
                    "current_level": state.current_level,
                    "total_will_earned": state.total_will_earned,
                    "streak_history": history,
                    "last_completed_on": state.last_completed_on.isoformat() if state.last_completed_on else None,
                },
            )

    @staticmethod
    def _market_from_row(row) -> MarketState:
        return MarketState(
            user_id=row.user_id,
            ticket_id=row.ticket_id,
            last_purchased_at=_as_utc(row.last_purchased_at),
            cooldown_duration=row.cooldown_duration,
            base_inflation=row.base_inflation,
        )

    @_wrap_db_errors
    def get_market_state(self, user_id: str, item_id: str) -> Optional[MarketState]:
        with get_db_session() as session:
            row = session.execute(
                select(market_states).where(
                    and_(market_states.c.user_id == user_id, market_states.c.ticket_id == item_id)
                )
            ).first()
        return self._market_from_row(row) if row else None

    @_wrap_db_errors
    def save_market_state(self, state: MarketState) -> None:
        with get_db_session() as session:
            _upsert(
                session,
                market_states,
                {"user_id": state.user_id, "ticket_id": state.ticket_id},
                {
                    "last_purchased_at": state.last_purchased_at,
                    "cooldown_duration": state.cooldown_duration,
                    "base_inflation": state.base_inflation,
                },
            )

    @_wrap_db_errors
    def list_market_states(self, user_id: str) -> List[MarketState]:
        with get_db_session() as session:
            rows = session.execute(
                select(market_states).where(market_states.c.user_id == user_id).order_by(market_states.c.ticket_id)
            ).fetchall()
        return [self._market_from_row(row) for row in rows]

    @_wrap_db_errors
    def delete_market_state(self, user_id: str, item_id: str) -> None:
        with get_db_session() as session:
            session.execute(
                delete(market_states).where(
                    and_(market_states.c.user_id == user_id, market_states.c.ticket_id == item_id)
                )
            )

    @_wrap_db_errors
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with get_db_session() as session:
            row = session.execute(select(user_profiles).where(user_profiles.c.id == user_id)).first()
        if row is None:
            return None
        return UserProfile(
            id=row.id,
            coins=row.coins,
            stars=row.stars,
            stats=dict(row.stats),
            last_reset_date=row.last_reset_date,
        )

    @_wrap_db_errors
    def save_profile(self, profile: UserProfile) -> None:
        values = profile.to_dict()
        key = {"id": values.pop("id")}
        with get_db_session() as session:
            _upsert(session, user_profiles, key, values)

    @_wrap_db_errors
    def get_daily_path_progress(self, identity_id: str, day: str) -> Optional[DailyPathProgress]:
        with get_db_session() as session:
            row = session.execute(
                select(daily_path_progress).where(
                    and_(daily_path_progress.c.identity_id == identity_id, daily_path_progress.c.day == day)
                )
            ).first()
        if row is None:
            return None
        return DailyPathProgress(
            user_id=row.user_id,
            identity_id=row.identity_id,
            date=row.day,
            tasks_total=row.tasks_total,
            tasks_completed=row.tasks_completed,
            percentage=row.percentage,
            status=row.status,
            completed_task_ids=list(row.completed_task_ids),
            completed_subtask_ids=list(row.completed_subtask_ids),
            streak_counted=bool(row.streak_counted),
        )

    @_wrap_db_errors
    def save_daily_path_progress(self, progress: DailyPathProgress) -> None:
        with get_db_session() as session:
            _upsert(
                session,
                daily_path_progress,
                {"identity_id": progress.identity_id, "day": progress.date},
                {
                    "user_id": progress.user_id,
                    "tasks_total": progress.tasks_total,
                    "tasks_completed": progress.tasks_completed,
                    "percentage": progress.percentage,
                    "status": progress.status,
                    "completed_task_ids": list(progress.completed_task_ids),
                    "completed_subtask_ids": list(progress.completed_subtask_ids),
                    "streak_counted": progress.streak_counted,
                },
            )

    @_wrap_db_errors
    def list_quests(self, user_id: str) -> List[Quest]:
        with get_db_session() as session:
            rows = session.execute(
                select(quests).where(quests.c.user_id == user_id).order_by(quests.c.id)
            ).fetchall()
        return [
            Quest(id=row.id, title=row.title, is_recurring=row.is_recurring, status=row.status, date=row.board_date)
            for row in rows
        ]

    @_wrap_db_errors
    def save_quests(self, user_id: str, items: List[Quest]) -> None:
        with get_db_session() as session:
            for quest in items:
                _upsert(
                    session,
                    quests,
                    {"id": quest.id},
                    {
                        "user_id": user_id,
                        "title": quest.title,
                        "is_recurring": quest.is_recurring,
                        "status": quest.status,
                        "board_date": quest.date,
                    },
                )

    @_wrap_db_errors
    def get_task_states(self, identity_ids: List[str]) -> Dict[str, DailyTaskState]:
        states = {identity_id: DailyTaskState() for identity_id in identity_ids}
        if not identity_ids:
            return states
        with get_db_session() as session:
            rows = session.execute(
                select(daily_task_states).where(daily_task_states.c.identity_id.in_(identity_ids))
            ).fetchall()
        for row in rows:
            states[row.identity_id] = DailyTaskState(
                completed_task_ids=set(row.completed_task_ids),
                completed_subtask_ids=set(row.completed_subtask_ids),
            )
        return states

    @_wrap_db_errors
    def save_task_state(self, identity_id: str, state: DailyTaskState) -> None:
        with get_db_session() as session:
            _upsert(
                session,
                daily_task_states,
                {"identity_id": identity_id},
                {
                    "completed_task_ids": sorted(state.completed_task_ids),
                    "completed_subtask_ids": sorted(state.completed_subtask_ids),
                },
            )

    @_wrap_db_errors
    def save_daily_record(self, record: DailyRecord) -> None:
        stats = {identity_id: asdict(item) for identity_id, item in record.path_stats.items()}
        with get_db_session() as session:
            _upsert(
                session,
                daily_records,
                {"user_id": record.user_id, "day": record.date},
                {"path_stats": stats, "quests_completed": record.quests_completed},
            )

    @_wrap_db_errors
    def get_daily_record(self, user_id: str, day: str) -> Optional[DailyRecord]:
        with get_db_session() as session:
            row = session.execute(
                select(daily_records).where(and_(daily_records.c.user_id == user_id, daily_records.c.day == day))
            ).first()
        if row is None:
            return None
        return DailyRecord(
            user_id=row.user_id,
            date=row.day,
            path_stats={key: PathStats(**value) for key, value in row.path_stats.items()},
            quests_completed=row.quests_completed,
        )
