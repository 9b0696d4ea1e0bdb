from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from animaforge.api.deps import Services, get_services
from animaforge.features.market.engine import InflationEngine
from animaforge.models.market import InventoryItem, ShopItem

router = APIRouter()


class PurchaseRequest(BaseModel):
    ticket_id: str = Field(..., min_length=1)
    cooldown_hours: Optional[float] = Field(None, gt=0)
    base_inflation: Optional[float] = Field(None, ge=0)


class ShopItemIn(BaseModel):
    id: str
    name: str
    category: str
    cost_coins: int = Field(..., ge=0)
    base_inflation: float = Field(0.0, ge=0)
    cooldown_time: Optional[float] = Field(None, gt=0)


class InventoryItemIn(BaseModel):
    item_template_id: str
    quantity: int = Field(1, ge=0)
    is_used: bool = False
    used_at: Optional[datetime] = None
    cooldown_duration: Optional[float] = None


class PriceShopRequest(BaseModel):
    items: List[ShopItemIn]
    inventory: List[InventoryItemIn] = []


@router.post("/v1/market/{user_id}/purchases", status_code=201)
def record_purchase(user_id: str, body: PurchaseRequest, services: Services = Depends(get_services)):
    state = services.market.record_purchase(user_id, body.ticket_id, body.cooldown_hours, body.base_inflation)
    return state.to_dict()


@router.get("/v1/market/{user_id}/tickets/{ticket_id}")
def ticket_price(
    user_id: str,
    ticket_id: str,
    base_price: int = Query(..., ge=0),
    services: Services = Depends(get_services),
):
    remaining = services.market.get_remaining_cooldown(user_id, ticket_id)
    return {
        "ticket_id": ticket_id,
        "current_price": services.market.get_current_price(user_id, ticket_id, base_price),
        "inflation_active": services.market.is_inflation_active(user_id, ticket_id),
        "remaining_ms": remaining,
        "remaining": InflationEngine.format_time_remaining(remaining),
    }


def _normalize(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


@router.post("/v1/market/prices")
def price_shop(body: PriceShopRequest, services: Services = Depends(get_services)):
    items = [ShopItem(**item.model_dump()) for item in body.items]
    inventory = [
        InventoryItem(**{**entry.model_dump(), "used_at": _normalize(entry.used_at)}) for entry in body.inventory
    ]
    priced = services.market.price_shop(items, inventory)
    return {"items": [entry.to_dict() for entry in priced]}


@router.post("/v1/market/{user_id}/cleanup")
def cleanup(user_id: str, services: Services = Depends(get_services)):
    return {"removed": services.market.clean_expired_states(user_id)}
