"""Cross-context contract for station tickets.

The coordination context publishes one ``TicketMessage`` per station present
on an order; each station worker consumes its own copy from the ticket topic.
The station and preparation-status vocabularies are shared so both sides
agree on the values that travel over the wire.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

TICKET_TOPIC = "stations::tickets"


class StationKind(Enum):
    KITCHEN = "kitchen"
    BARISTA = "barista"


class PreparationStatus(Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    READY = "Ready"
    COLLECTED = "Collected"
    CANCELLED = "Cancelled"


class TicketLine(BaseModel):
    line_item_id: str
    product_ref: str
    quantity: int


class TicketMessage(BaseModel):
    """The fan-out message: one order's line items for a single station."""

    order_id: str
    task_id: str
    station: str
    items: list[TicketLine]
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_payload(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_payload(cls, payload: str | bytes) -> "TicketMessage":
        return cls.model_validate_json(payload)


# Preparation moves forward one step at a time. Cancelled is reachable from
# any state short of Collected.
ALLOWED_TRANSITIONS = {
    PreparationStatus.PENDING: {PreparationStatus.IN_PROGRESS, PreparationStatus.CANCELLED},
    PreparationStatus.IN_PROGRESS: {PreparationStatus.READY, PreparationStatus.CANCELLED},
    PreparationStatus.READY: {PreparationStatus.COLLECTED, PreparationStatus.CANCELLED},
    PreparationStatus.COLLECTED: set(),  # terminal
    PreparationStatus.CANCELLED: set(),  # terminal
}

TERMINAL_STATUSES = {PreparationStatus.COLLECTED, PreparationStatus.CANCELLED}
