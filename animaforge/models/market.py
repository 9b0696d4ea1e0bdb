from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Literal, Optional

InflationLevel = Literal["low", "medium", "high", "extreme"]


@dataclass
class MarketState:
    """
    Per (user, item) purchase-driven inflation record.

    Overwritten on every purchase of the same item. Expired once
    now > last_purchased_at + cooldown_duration; deletion is left to an
    explicit cleanup sweep.
    """

    user_id: str
    ticket_id: str
    last_purchased_at: datetime
    cooldown_duration: float = 24  # hours
    base_inflation: float = 0.25

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_purchased_at"] = self.last_purchased_at.isoformat()
        return data


@dataclass(frozen=True)
class ShopItem:
    id: str
    name: str
    category: str
    cost_coins: int
    base_inflation: float = 0.0
    cooldown_time: Optional[float] = None  # hours


@dataclass(frozen=True)
class InventoryItem:
    item_template_id: str
    quantity: int = 1
    is_used: bool = False
    used_at: Optional[datetime] = None
    cooldown_duration: Optional[float] = None  # hours
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class InflationResult:
    current_price: int
    inflation_percent: float


@dataclass(frozen=True)
class PricedShopItem:
    """A shop item as rendered; current_price is None outside the ticket category."""

    item: ShopItem
    base_price: int
    current_price: Optional[int] = None
    is_inflated: bool = False
    inflation_reset_at: Optional[datetime] = None
    active_duration: Optional[float] = None  # hours

    def to_dict(self) -> dict:
        data = asdict(self.item)
        data.update(
            {
                "base_price": self.base_price,
                "is_inflated": self.is_inflated,
                "active_duration": self.active_duration,
            }
        )
        if self.current_price is not None:
            data["current_price"] = self.current_price
        if self.inflation_reset_at is not None:
            data["inflation_reset_at"] = self.inflation_reset_at.isoformat()
        return data
