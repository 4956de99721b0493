"""Pydantic API schemas for the Coordination domain.

These are the external API contracts — separate from domain commands.
"""

from datetime import datetime

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class LineItemRequest(BaseModel):
    product_ref: str
    quantity: int
    station_affinity: str


class SubmitOrderRequest(BaseModel):
    items: list[LineItemRequest]
    payment_reference: str | None = None


class ReportStatusRequest(BaseModel):
    status: str
    idempotency_token: str


class CancelOrderRequest(BaseModel):
    idempotency_token: str
    reason: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class StationStatusResponse(BaseModel):
    station: str
    status: str
    ticket_published: bool
    updated_at: datetime | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    aggregate_status: str
    stations: list[StationStatusResponse]


class ReportAckResponse(BaseModel):
    applied: bool
    status: str


class CancelOrderResponse(BaseModel):
    order_id: str
    cancelled_stations: list[str]


class OrderSummaryResponse(BaseModel):
    order_id: str
    aggregate_status: str
    kitchen_status: str | None = None
    barista_status: str | None = None
    item_count: int
    submitted_at: datetime | None = None
    updated_at: datetime | None = None


class RepublishResponse(BaseModel):
    republished: int
