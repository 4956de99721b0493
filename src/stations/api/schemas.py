"""Pydantic API schemas for the Stations domain."""

from datetime import datetime

from pydantic import BaseModel


class CancelTicketRequest(BaseModel):
    reason: str | None = None


class RetryReportsRequest(BaseModel):
    ticket_id: str | None = None


class TicketLineResponse(BaseModel):
    line_item_id: str
    product_ref: str
    quantity: int


class TicketResponse(BaseModel):
    ticket_id: str
    order_id: str
    station: str
    status: str
    items: list[TicketLineResponse]
    received_at: datetime | None = None


class TicketListResponse(BaseModel):
    station: str
    tickets: list[TicketResponse]


class TicketStatusResponse(BaseModel):
    ticket_id: str
    status: str


class FailedReportResponse(BaseModel):
    ticket_id: str
    order_id: str
    station: str
    status: str
    reason: str
    error: str | None = None
    attempts: int = 0
    failed_at: datetime | None = None


class RetryReportsResponse(BaseModel):
    reported: int
