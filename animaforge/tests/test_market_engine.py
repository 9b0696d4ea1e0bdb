from datetime import datetime, timedelta, timezone

import pytest

from animaforge.core.errors import InvariantViolationError
from animaforge.features.market.engine import InflationEngine
from animaforge.models.market import InventoryItem, ShopItem

NOW = datetime(2025, 12, 25, 12, 0, tzinfo=timezone.utc)
TICKET = ShopItem(id="movie", name="Movie Night", category="tickets", cost_coins=100, base_inflation=0.25)


class TestCalculateInflation:
    def test_two_held_tickets(self):
        result = InflationEngine.calculate_inflation(TICKET, 2)
        assert result.current_price == 150
        assert result.inflation_percent == pytest.approx(50.0)

    def test_zero_count_is_base_price(self):
        result = InflationEngine.calculate_inflation(TICKET, 0)
        assert result.current_price == 100
        assert result.inflation_percent == 0

    def test_accepts_mapping(self):
        result = InflationEngine.calculate_inflation({"cost_coins": 30, "base_inflation": 0.5}, 1)
        assert result.current_price == 45

    def test_negative_count_raises(self):
        with pytest.raises(InvariantViolationError):
            InflationEngine.calculate_inflation(TICKET, -1)


@pytest.mark.parametrize("percent,level", [(0, "low"), (50, "medium"), (100, "high"), (199, "high"), (250, "extreme")])
def test_inflation_levels(percent, level):
    assert InflationEngine.get_inflation_level(percent) == level


def test_time_remaining_formatting():
    assert InflationEngine.format_time_remaining(5 * 3_600_000 + 7 * 60_000 + 59_000) == "05:07"
    assert InflationEngine.format_time_remaining(-10) == "00:00"
    assert InflationEngine.format_time_remaining(30 * 3_600_000) == "30:00"


def test_reset_time_never_negative():
    assert InflationEngine.get_inflation_reset_time(NOW - timedelta(hours=1), NOW) == 0
    assert InflationEngine.get_inflation_reset_time(NOW + timedelta(minutes=2), NOW) == 120_000
    assert InflationEngine.get_inflation_reset_time(None, NOW) == 0


def test_count_active_includes_unexpired_ghosts():
    inventory = [
        InventoryItem(item_template_id="movie", quantity=2),
        InventoryItem(item_template_id="movie", is_used=True, used_at=NOW - timedelta(hours=2), cooldown_duration=24),
        InventoryItem(item_template_id="movie", is_used=True, used_at=NOW - timedelta(hours=25), cooldown_duration=24),
        InventoryItem(item_template_id="dinner", quantity=5),
    ]
    assert InflationEngine.count_active("movie", inventory, NOW) == 3


def test_apply_inflation_prices_only_tickets():
    potion = ShopItem(id="potion", name="Potion", category="consumables", cost_coins=40, base_inflation=0.5)
    inventory = [InventoryItem(item_template_id="movie"), InventoryItem(item_template_id="potion", quantity=3)]

    ticket, other = InflationEngine.apply_inflation_to_shop_items([TICKET, potion], inventory, NOW)

    assert ticket.current_price == 125
    assert ticket.is_inflated
    assert ticket.inflation_reset_at == NOW + timedelta(hours=24)
    assert other.current_price is None
    assert other.base_price == 40
    assert "current_price" not in other.to_dict()


def test_uninflated_ticket_has_no_reset_time():
    (ticket,) = InflationEngine.apply_inflation_to_shop_items([TICKET], [], NOW)
    assert ticket.current_price == 100
    assert not ticket.is_inflated
    assert ticket.inflation_reset_at is None
