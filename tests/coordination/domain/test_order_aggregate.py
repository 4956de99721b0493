"""Tests for the Order aggregate — submission, validation and station routing."""

import json

import pytest
from coordination.order.events import OrderSubmitted
from coordination.order.order import Order, resolve_station
from protean.exceptions import ValidationError
from shared.tickets import StationKind


def _items():
    return [
        {"product_ref": "burger", "quantity": 1, "station_affinity": "food"},
        {"product_ref": "latte", "quantity": 2, "station_affinity": "beverage"},
        {"product_ref": "fries", "quantity": 1, "station_affinity": "food"},
    ]


class TestResolveStation:
    @pytest.mark.parametrize("affinity", ["food", "kitchen", "FOOD", " Kitchen "])
    def test_kitchen_affinities(self, affinity):
        assert resolve_station(affinity) == StationKind.KITCHEN

    @pytest.mark.parametrize("affinity", ["beverage", "drink", "barista", "Beverage"])
    def test_barista_affinities(self, affinity):
        assert resolve_station(affinity) == StationKind.BARISTA

    @pytest.mark.parametrize("affinity", ["dessert", "", None, 3])
    def test_unknown_affinity(self, affinity):
        assert resolve_station(affinity) is None


class TestOrderSubmission:
    def test_submit_creates_line_items(self):
        order = Order.submit(_items(), payment_reference="pay-001")
        assert len(order.items) == 3
        assert order.payment_reference == "pay-001"
        assert order.submitted_at is not None

    def test_line_items_carry_resolved_station(self):
        order = Order.submit(_items())
        stations = {item.product_ref: item.station for item in order.items}
        assert stations == {"burger": "kitchen", "latte": "barista", "fries": "kitchen"}

    def test_original_affinity_is_kept(self):
        order = Order.submit([{"product_ref": "tea", "quantity": 1, "station_affinity": "Drink"}])
        assert order.items[0].station_affinity == "Drink"
        assert order.items[0].station == "barista"

    def test_stations_in_order_of_first_appearance(self):
        order = Order.submit(_items())
        assert order.stations() == [StationKind.KITCHEN, StationKind.BARISTA]

    def test_single_station_order(self):
        order = Order.submit([{"product_ref": "espresso", "quantity": 1, "station_affinity": "beverage"}])
        assert order.stations() == [StationKind.BARISTA]

    def test_items_for_station(self):
        order = Order.submit(_items())
        kitchen = order.items_for(StationKind.KITCHEN)
        assert sorted(item.product_ref for item in kitchen) == ["burger", "fries"]

    def test_raises_order_submitted(self):
        order = Order.submit(_items())
        events = [e for e in order._events if isinstance(e, OrderSubmitted)]
        assert len(events) == 1
        assert events[0].order_id == str(order.id)
        assert events[0].item_count == 3
        assert json.loads(events[0].stations) == ["kitchen", "barista"]


class TestOrderValidation:
    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Order.submit([])
        assert "items" in exc.value.messages

    def test_missing_product_ref_rejected(self):
        with pytest.raises(ValidationError):
            Order.submit([{"quantity": 1, "station_affinity": "food"}])

    @pytest.mark.parametrize("quantity", [0, -1, "2", 1.5, True, None])
    def test_invalid_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            Order.submit([{"product_ref": "burger", "quantity": quantity, "station_affinity": "food"}])

    def test_unresolvable_affinity_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Order.submit([{"product_ref": "cake", "quantity": 1, "station_affinity": "dessert"}])
        assert any("dessert" in message for message in exc.value.messages["items"])

    def test_all_item_errors_reported(self):
        with pytest.raises(ValidationError) as exc:
            Order.submit(
                [
                    {"product_ref": "", "quantity": 1, "station_affinity": "food"},
                    {"product_ref": "cake", "quantity": 0, "station_affinity": "dessert"},
                ]
            )
        assert len(exc.value.messages["items"]) == 3
