"""
Market state service.

Tracks the last purchase of each ticket per user. While a purchase is inside
its cooldown window the ticket costs ceil(base * (1 + base_inflation));
afterwards the record is inert until a cleanup sweep deletes it.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Iterable, List, Optional

from animaforge.core.clock import Clock, SystemClock
from animaforge.core.errors import InvariantViolationError
from animaforge.core.logging import log_event
from animaforge.core.optimistic import InFlightGuard
from animaforge.features.market.engine import DEFAULT_COOLDOWN_HOURS, TICKET_CATEGORY, InflationEngine
from animaforge.models.market import InventoryItem, MarketState, PricedShopItem, ShopItem
from animaforge.persistence.base import Repository

logger = logging.getLogger("animaforge")

DEFAULT_BASE_INFLATION = 0.25


class MarketService:
    def __init__(
        self,
        repository: Repository,
        clock: Optional[Clock] = None,
        default_cooldown_hours: float = DEFAULT_COOLDOWN_HOURS,
        default_base_inflation: float = DEFAULT_BASE_INFLATION,
        ticket_category: str = TICKET_CATEGORY,
        guard: Optional[InFlightGuard] = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._default_cooldown = default_cooldown_hours
        self._default_inflation = default_base_inflation
        self._ticket_category = ticket_category
        self._guard = guard or InFlightGuard()

    def record_purchase(
        self,
        user_id: str,
        ticket_id: str,
        cooldown_hours: Optional[float] = None,
        base_inflation: Optional[float] = None,
    ) -> MarketState:
        """Create or overwrite the market state for (user, ticket)."""
        cooldown = self._default_cooldown if cooldown_hours is None else cooldown_hours
        rate = self._default_inflation if base_inflation is None else base_inflation
        if cooldown <= 0 or rate < 0:
            raise InvariantViolationError("cooldown must be positive and base_inflation non-negative")

        state = MarketState(
            user_id=user_id,
            ticket_id=ticket_id,
            last_purchased_at=self._clock.now(),
            cooldown_duration=cooldown,
            base_inflation=rate,
        )
        with self._guard.hold(f"market:{user_id}:{ticket_id}"):
            self._repository.save_market_state(state)
        log_event(
            "info",
            "market.purchase_recorded",
            user_id=user_id,
            event_type="market.purchase",
            extra={"ticket_id": ticket_id, "cooldown_hours": cooldown, "base_inflation": rate},
        )
        return state

    def get_market_state(self, user_id: str, ticket_id: str) -> Optional[MarketState]:
        return self._repository.get_market_state(user_id, ticket_id)

    def is_inflation_active(self, user_id: str, ticket_id: str) -> bool:
        state = self.get_market_state(user_id, ticket_id)
        return state is not None and self._clock.now() < _expires_at(state)

    def get_current_price(self, user_id: str, ticket_id: str, base_price: int) -> int:
        state = self.get_market_state(user_id, ticket_id)
        if state is None or self._clock.now() >= _expires_at(state):
            return base_price
        return int(math.ceil(base_price * (1 + state.base_inflation) - 1e-9))

    def get_remaining_cooldown(self, user_id: str, ticket_id: str) -> float:
        """Milliseconds until inflation for this ticket lapses; 0 when inactive."""
        state = self.get_market_state(user_id, ticket_id)
        if state is None:
            return 0.0
        return InflationEngine.get_inflation_reset_time(_expires_at(state), self._clock.now())

    def clean_expired_states(self, user_id: str) -> int:
        now = self._clock.now()
        removed = 0
        for state in self._repository.list_market_states(user_id):
            if now > _expires_at(state):
                self._repository.delete_market_state(user_id, state.ticket_id)
                removed += 1
        if removed:
            logger.info("market.expired_cleaned", extra={"user_id": user_id, "removed": removed})
        return removed

    def price_shop(self, items: Iterable[ShopItem], inventory: Iterable[InventoryItem]) -> List[PricedShopItem]:
        return InflationEngine.apply_inflation_to_shop_items(
            items, inventory, self._clock.now(), ticket_category=self._ticket_category
        )


def _expires_at(state: MarketState):
    return state.last_purchased_at + timedelta(hours=state.cooldown_duration)
