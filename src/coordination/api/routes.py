"""FastAPI routes for the Coordination domain."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from coordination.api.schemas import (
    CancelOrderRequest,
    CancelOrderResponse,
    OrderIdResponse,
    OrderStatusResponse,
    OrderSummaryResponse,
    ReportAckResponse,
    ReportStatusRequest,
    RepublishResponse,
    SubmitOrderRequest,
)
from coordination.order.cancellation import cancel_order
from coordination.order.fan_out import RepublishPendingTickets
from coordination.order.reporting import report_station_status
from coordination.order.status import get_order_status
from coordination.order.submission import SubmitOrder
from coordination.projections.order_status import OrderStatusView

order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def submit_order(body: SubmitOrderRequest) -> OrderIdResponse:
    """Accept an order and fan it out to its stations."""
    command = SubmitOrder(
        items=json.dumps([item.model_dump() for item in body.items]),
        payment_reference=body.payment_reference,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.post("/fan-out/retry", response_model=RepublishResponse)
async def republish_pending_tickets() -> RepublishResponse:
    """Re-publish tickets whose fan-out has not succeeded yet."""
    republished = current_domain.process(RepublishPendingTickets(), asynchronous=False)
    return RepublishResponse(republished=republished or 0)


@order_router.get("/{order_id}/status", response_model=OrderStatusResponse)
async def order_status(order_id: str) -> OrderStatusResponse:
    """Current aggregate status, derived from the station tasks."""
    return OrderStatusResponse(**get_order_status(order_id))


@order_router.get("/{order_id}/summary", response_model=OrderSummaryResponse)
async def order_summary(order_id: str) -> OrderSummaryResponse:
    """Cached status row from the order status projection."""
    view = current_domain.repository_for(OrderStatusView).get(order_id)
    return OrderSummaryResponse(
        order_id=str(view.order_id),
        aggregate_status=view.aggregate_status,
        kitchen_status=view.kitchen_status,
        barista_status=view.barista_status,
        item_count=view.item_count or 0,
        submitted_at=view.submitted_at,
        updated_at=view.updated_at,
    )


@order_router.put("/{order_id}/stations/{station}/status", response_model=ReportAckResponse)
async def report_status(order_id: str, station: str, body: ReportStatusRequest) -> ReportAckResponse:
    """Apply a station's status report. Duplicates are acknowledged with applied=false."""
    ack = report_station_status(order_id, station, body.status, body.idempotency_token)
    return ReportAckResponse(**ack)


@order_router.put("/{order_id}/cancel", response_model=CancelOrderResponse)
async def cancel(order_id: str, body: CancelOrderRequest) -> CancelOrderResponse:
    """Cancel every station task that has not been collected."""
    stations = cancel_order(order_id, body.idempotency_token, body.reason)
    return CancelOrderResponse(order_id=order_id, cancelled_stations=stations)
