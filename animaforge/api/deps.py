"""Service wiring shared by the routers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from starlette.requests import Request

from animaforge.core.clock import Clock, SystemClock
from animaforge.core.config import Settings, settings
from animaforge.core.database import create_all_tables, get_database_url, init_engine
from animaforge.core.optimistic import InFlightGuard
from animaforge.features.accrual.service import AccrualService
from animaforge.features.chronos.service import ChronosService
from animaforge.features.market.service import MarketService
from animaforge.features.progression.service import ProgressionService
from animaforge.features.rewards.ledger import RewardLedger
from animaforge.features.streaks.service import StreakService
from animaforge.persistence.base import Repository
from animaforge.persistence.memory import InMemoryRepository
from animaforge.persistence.sql import SqlRepository

logger = logging.getLogger("animaforge")


@dataclass
class Services:
    repository: Repository
    clock: Clock
    ledger: RewardLedger
    progression: ProgressionService
    streaks: StreakService
    accrual: AccrualService
    chronos: ChronosService
    market: MarketService


def build_repository() -> Repository:
    """SQL when a database URL is configured, in-memory otherwise."""
    url = get_database_url()
    if not url:
        logger.info("repository.in_memory")
        return InMemoryRepository()
    init_engine(url)
    create_all_tables()
    logger.info("repository.sql")
    return SqlRepository()


def build_services(
    repository: Optional[Repository] = None,
    clock: Optional[Clock] = None,
    cfg: Settings = settings,
) -> Services:
    repository = repository or build_repository()
    clock = clock or SystemClock()
    guard = InFlightGuard()
    ledger = RewardLedger(repository)
    streaks = StreakService(repository, ledger, clock=clock, guard=guard)
    return Services(
        repository=repository,
        clock=clock,
        ledger=ledger,
        progression=ProgressionService(repository, clock=clock, final_tier=cfg.FINAL_TIER, guard=guard),
        streaks=streaks,
        accrual=AccrualService(repository, ledger, guard=guard),
        chronos=ChronosService(repository, clock=clock, streak_service=streaks, guard=guard),
        market=MarketService(
            repository,
            clock=clock,
            default_cooldown_hours=cfg.DEFAULT_COOLDOWN_HOURS,
            default_base_inflation=cfg.DEFAULT_BASE_INFLATION,
            ticket_category=cfg.SHOP_TICKET_CATEGORY,
            guard=guard,
        ),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
