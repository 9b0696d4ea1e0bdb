# animaforge/conftest.py
from datetime import datetime, timezone

import pytest

from animaforge.core.clock import FixedClock
from animaforge.persistence.memory import InMemoryRepository


@pytest.fixture
def clock():
    """Christmas noon UTC; tests move it with clock.advance()."""
    return FixedClock(datetime(2025, 12, 25, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def services(repository, clock):
    from animaforge.api.deps import build_services
    return build_services(repository=repository, clock=clock)


@pytest.fixture
def client(services):
    from fastapi.testclient import TestClient
    from animaforge.main import create_app
    return TestClient(create_app(services))


@pytest.fixture
def sql_repository(tmp_path):
    """
    SqlRepository over a throwaway SQLite file.

    Uses TEST_DATABASE_URL instead when it is set.
    """
    import os
    from animaforge.core.database import create_all_tables, dispose_engine, drop_all_tables, init_engine
    from animaforge.persistence.sql import SqlRepository

    url = os.getenv("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'animaforge-test.db'}"
    init_engine(url)
    create_all_tables()
    yield SqlRepository()
    drop_all_tables()
    dispose_engine()
