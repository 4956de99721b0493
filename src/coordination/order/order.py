"""Order aggregate — the canonical record of an accepted order.

An order is a list of line items, each bound to the preparation station that
makes it. The order carries no status field of its own: its aggregate status
is derived from the StationTasks opened for it (see ``order.status``).
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Integer, String
from shared.tickets import StationKind

from coordination.domain import coordination
from coordination.order.events import OrderSubmitted

# Affinities accepted from order entry, case-insensitive.
STATION_AFFINITIES = {
    "food": StationKind.KITCHEN,
    "kitchen": StationKind.KITCHEN,
    "beverage": StationKind.BARISTA,
    "drink": StationKind.BARISTA,
    "barista": StationKind.BARISTA,
}


def resolve_station(affinity) -> StationKind | None:
    """Map a submitted station affinity to the station that prepares it."""
    if not isinstance(affinity, str):
        return None
    return STATION_AFFINITIES.get(affinity.strip().lower())


def _item_errors(index: int, item) -> list[str]:
    if not isinstance(item, dict):
        return [f"Item {index}: expected an object"]

    errors = []
    if not item.get("product_ref"):
        errors.append(f"Item {index}: product_ref is required")

    quantity = item.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        errors.append(f"Item {index}: quantity must be a positive integer")

    if resolve_station(item.get("station_affinity")) is None:
        errors.append(f"Item {index}: unresolvable station affinity {item.get('station_affinity')!r}")
    return errors


@coordination.entity(part_of="Order")
class LineItem:
    """A product ordered, in a quantity, for one station."""

    product_ref = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    station_affinity = String(required=True, max_length=50)
    station = String(required=True, choices=StationKind)


@coordination.aggregate
class Order:
    items = HasMany(LineItem)
    payment_reference = String(max_length=255)
    submitted_at = DateTime()

    @classmethod
    def submit(cls, items_data: list[dict], payment_reference: str | None = None):
        """Accept an order after checking every item can be routed to a station."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        errors = [error for index, item in enumerate(items_data, start=1) for error in _item_errors(index, item)]
        if errors:
            raise ValidationError({"items": errors})

        now = datetime.now(UTC)
        order = cls(payment_reference=payment_reference, submitted_at=now)
        for item in items_data:
            order.add_items(
                LineItem(
                    product_ref=item["product_ref"],
                    quantity=item["quantity"],
                    station_affinity=item["station_affinity"],
                    station=resolve_station(item["station_affinity"]).value,
                )
            )

        order.raise_(
            OrderSubmitted(
                order_id=str(order.id),
                item_count=len(items_data),
                stations=json.dumps([s.value for s in order.stations()]),
                payment_reference=payment_reference,
                submitted_at=now,
            )
        )
        return order

    def stations(self) -> list[StationKind]:
        """Distinct stations on this order, in order of first appearance."""
        seen = []
        for item in self.items or []:
            station = StationKind(item.station)
            if station not in seen:
                seen.append(station)
        return seen

    def items_for(self, station: StationKind) -> list[LineItem]:
        return [item for item in (self.items or []) if item.station == station.value]
