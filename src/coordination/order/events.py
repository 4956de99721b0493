"""Coordination domain events — facts about orders and their station tasks.

All events are past tense and versioned. StationTask events carry the order
id so the status projection can rebuild the order's row from any of them.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from coordination.domain import coordination


@coordination.event(part_of="Order")
class OrderSubmitted:
    """An order was accepted at the point of sale."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_count = Integer(required=True)
    stations = Text(required=True)  # JSON list of station names
    payment_reference = String()
    submitted_at = DateTime(required=True)


@coordination.event(part_of="StationTask")
class StationTaskOpened:
    """A station task was created for one station present on an order."""

    __version__ = 1

    task_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    items = Text(required=True)  # JSON list of ticket lines
    opened_at = DateTime(required=True)


@coordination.event(part_of="StationTask")
class StationTicketPublished:
    """The station's copy of the order was handed to the ticket topic."""

    __version__ = 1

    task_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    message_id = String(required=True)
    attempts = Integer(required=True)
    published_at = DateTime(required=True)


@coordination.event(part_of="StationTask")
class StationTaskAdvanced:
    """A station reported forward progress on its task."""

    __version__ = 1

    task_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    idempotency_token = String(required=True)
    advanced_at = DateTime(required=True)


@coordination.event(part_of="StationTask")
class StationTaskCancelled:
    """A station task was cancelled before it was collected."""

    __version__ = 1

    task_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    previous_status = String(required=True)
    idempotency_token = String(required=True)
    cancelled_at = DateTime(required=True)
