"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support
- Table definitions for the SQL repository
"""
from typing import Optional
from contextlib import contextmanager
import logging
import os

from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    Float,
    JSON,
    Text,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker

from animaforge.core.config import settings

logger = logging.getLogger("animaforge")

metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # seconds

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL
    if test_url:
        return test_url
    return settings.DATABASE_URL


def _is_in_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or url.endswith(":memory:")


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if _is_in_memory_sqlite(url):
        # One shared connection, otherwise each connection sees an empty database
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,
        )

    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def dispose_engine() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session():
    """
    Context manager for database sessions. Commits on success, rolls back on error.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """Create all tables defined in metadata. Idempotent."""
    metadata.create_all(bind=get_engine())


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=get_engine())


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


user_profiles = Table(
    'user_profiles',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('coins', Integer, nullable=False, server_default='0'),
    Column('stars', Integer, nullable=False, server_default='0'),
    Column('stats', JSON, nullable=False),
    Column('last_reset_date', String(10), nullable=True),
)

identities = Table(
    'identities',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False),
    Column('name', Text, nullable=False, server_default=''),
    Column('tier', String(4), nullable=False, server_default='D'),
    Column('level', Integer, nullable=False, server_default='1'),
    Column('days_completed', Integer, nullable=False, server_default='0'),
    Column('required_days_per_level', Integer, nullable=False, server_default='5'),
    Column('is_active', Boolean, nullable=False),
    Column('current_streak', Integer, nullable=False, server_default='0'),
    Column('longest_streak', Integer, nullable=False, server_default='0'),
    Index('idx_identities_user', 'user_id'),
)

identity_progress = Table(
    'identity_progress',
    metadata,
    Column('identity_id', String(100), primary_key=True),
    Column('tier', String(4), nullable=False),
    Column('level', Integer, nullable=False),
    Column('days_completed', Integer, nullable=False),
    Column('required_days_per_level', Integer, nullable=False),
    Column('completed_today', Boolean, nullable=False),
    Column('streak_days', Integer, nullable=False),
)

completion_history = Table(
    'completion_history',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('identity_id', String(100), nullable=False),
    Column('day', String(10), nullable=False),  # YYYY-MM-DD
    Column('completed', Boolean, nullable=False),
    UniqueConstraint('identity_id', 'day', name='uq_completion_history_identity_day'),
    Index('idx_completion_history_identity', 'identity_id'),
)

level_progress = Table(
    'level_progress',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('identity_id', String(100), nullable=False),
    Column('level', Integer, nullable=False),
    Column('gate_progress', JSON, nullable=False),
    Column('total_points_earned', Float, nullable=False),
    UniqueConstraint('user_id', 'identity_id', 'level', name='uq_level_progress_user_identity_level'),
)

streak_states = Table(
    'streak_states',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('current_streak', Integer, nullable=False),
    Column('max_streak', Integer, nullable=False),
    Column('current_level', Integer, nullable=False),
    Column('total_will_earned', Float, nullable=False),
    Column('streak_history', JSON, nullable=False),
    Column('last_completed_on', String(10), nullable=True),
)

market_states = Table(
    'market_states',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('ticket_id', String(100), nullable=False),
    Column('last_purchased_at', DateTime(timezone=True), nullable=False),
    Column('cooldown_duration', Float, nullable=False, server_default='24'),
    Column('base_inflation', Float, nullable=False, server_default='0.25'),
    UniqueConstraint('user_id', 'ticket_id', name='uq_market_states_user_ticket'),
    Index('idx_market_states_user', 'user_id'),
)

daily_path_progress = Table(
    'daily_path_progress',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('identity_id', String(100), nullable=False),
    Column('day', String(10), nullable=False),
    Column('tasks_total', Integer, nullable=False),
    Column('tasks_completed', Integer, nullable=False),
    Column('percentage', Integer, nullable=False),
    Column('status', String(20), nullable=False),
    Column('completed_task_ids', JSON, nullable=False),
    Column('completed_subtask_ids', JSON, nullable=False),
    Column('streak_counted', Boolean, nullable=False, server_default=text('false')),
    UniqueConstraint('identity_id', 'day', name='uq_daily_path_progress_identity_day'),
)

quests = Table(
    'quests',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False),
    Column('title', Text, nullable=False),
    Column('is_recurring', Boolean, nullable=False),
    Column('status', String(20), nullable=False),
    Column('board_date', String(20), nullable=False, server_default=''),
    Index('idx_quests_user', 'user_id'),
)

daily_task_states = Table(
    'daily_task_states',
    metadata,
    Column('identity_id', String(100), primary_key=True),
    Column('completed_task_ids', JSON, nullable=False),
    Column('completed_subtask_ids', JSON, nullable=False),
)

daily_records = Table(
    'daily_records',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('day', String(10), nullable=False),
    Column('path_stats', JSON, nullable=False),
    Column('quests_completed', Integer, nullable=False),
    UniqueConstraint('user_id', 'day', name='uq_daily_records_user_day'),
)
