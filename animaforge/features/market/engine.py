"""
Market inflation engine.

A ticket's price grows linearly with how many un-consumed units of it the
user holds: price = cost * (1 + base_inflation * count). Used tickets keep
counting, once each, until their cooldown runs out ("ghost" tickets).
Only the ticket category is inflated.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional, Union

from animaforge.core.errors import InvariantViolationError
from animaforge.models.market import InflationLevel, InflationResult, InventoryItem, PricedShopItem, ShopItem

TICKET_CATEGORY = "tickets"
DEFAULT_COOLDOWN_HOURS = 24
MS_PER_MINUTE = 60_000


class InflationEngine:
    @staticmethod
    def calculate_inflation(item: Union[ShopItem, Mapping[str, float]], inventory_count: int) -> InflationResult:
        """
        Price of `item` while `inventory_count` units sit in inventory.

        A zero count or zero rate returns cost_coins exactly with 0 percent.
        """
        cost = _field(item, "cost_coins")
        rate = _field(item, "base_inflation") or 0.0
        if inventory_count < 0:
            raise InvariantViolationError(f"inventory_count must be >= 0, got {inventory_count}")
        if inventory_count == 0 or rate == 0:
            return InflationResult(current_price=int(cost), inflation_percent=0.0)

        multiplier = 1 + rate * inventory_count
        return InflationResult(
            current_price=int(math.floor(cost * multiplier + 0.5)),
            inflation_percent=rate * inventory_count * 100,
        )

    @staticmethod
    def get_inflation_reset_time(reset_at: Optional[datetime], now: datetime) -> float:
        """Milliseconds until `reset_at`, never negative."""
        if reset_at is None:
            return 0.0
        return max(0.0, (reset_at - now).total_seconds() * 1000)

    @staticmethod
    def format_time_remaining(milliseconds: float) -> str:
        total_minutes = int(max(0.0, milliseconds) // MS_PER_MINUTE)
        hours, minutes = divmod(total_minutes, 60)
        return f"{hours:02d}:{minutes:02d}"

    @staticmethod
    def get_inflation_level(percent: float) -> InflationLevel:
        if percent <= 0:
            return "low"
        if percent < 100:
            return "medium"
        if percent < 200:
            return "high"
        return "extreme"

    @staticmethod
    def is_ghost(entry: InventoryItem, now: datetime) -> bool:
        """A used ticket whose cooldown has not yet elapsed."""
        if not entry.is_used or entry.used_at is None or not entry.cooldown_duration:
            return False
        return now < entry.used_at + timedelta(hours=entry.cooldown_duration)

    @staticmethod
    def count_active(item_id: str, inventory: Iterable[InventoryItem], now: datetime) -> int:
        count = 0
        for entry in inventory:
            if entry.item_template_id != item_id:
                continue
            if not entry.is_used and entry.quantity > 0:
                count += entry.quantity
            elif InflationEngine.is_ghost(entry, now):
                count += 1
        return count

    @staticmethod
    def apply_inflation_to_shop_items(
        items: Iterable[ShopItem],
        inventory: Iterable[InventoryItem],
        now: datetime,
        ticket_category: str = TICKET_CATEGORY,
    ) -> List[PricedShopItem]:
        """Price the ticket category; everything else passes through without a current price."""
        inventory = list(inventory)
        priced: List[PricedShopItem] = []
        for item in items:
            if item.category != ticket_category:
                priced.append(PricedShopItem(item=item, base_price=item.cost_coins))
                continue

            active = InflationEngine.count_active(item.id, inventory, now)
            price = InflationEngine.calculate_inflation(item, active).current_price
            cooldown = item.cooldown_time or DEFAULT_COOLDOWN_HOURS
            inflated = price > item.cost_coins
            priced.append(
                PricedShopItem(
                    item=item,
                    base_price=item.cost_coins,
                    current_price=price,
                    is_inflated=inflated,
                    inflation_reset_at=now + timedelta(hours=cooldown) if inflated else None,
                    active_duration=cooldown,
                )
            )
        return priced


def _field(item, name: str):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name)
