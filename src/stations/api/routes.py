"""FastAPI routes for the Stations domain.

Thin adapters that translate staff actions into domain commands.
"""

import json

from fastapi import APIRouter
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from shared.tickets import StationKind

from stations.api.schemas import (
    CancelTicketRequest,
    FailedReportResponse,
    RetryReportsRequest,
    RetryReportsResponse,
    TicketListResponse,
    TicketResponse,
    TicketStatusResponse,
)
from stations.projections.failed_reports import FailedReportView
from stations.ticket.preparation import (
    CancelTicket,
    CollectTicket,
    FinishPreparation,
    StartPreparation,
)
from stations.ticket.reporting import RetryPendingReports
from stations.ticket.ticket import StationTicket

ticket_router = APIRouter(prefix="/tickets", tags=["tickets"])


def _ticket_response(ticket: StationTicket) -> TicketResponse:
    return TicketResponse(
        ticket_id=str(ticket.id),
        order_id=str(ticket.order_id),
        station=ticket.station,
        status=ticket.status,
        items=json.loads(ticket.items),
        received_at=ticket.received_at,
    )


@ticket_router.get("", response_model=TicketListResponse)
async def list_open_tickets(station: str) -> TicketListResponse:
    """Open tickets for a station, oldest first."""
    if station not in {s.value for s in StationKind}:
        raise ValidationError({"station": [f"Unknown station {station!r}"]})
    tickets = current_domain.repository_for(StationTicket).find_open(station)
    return TicketListResponse(station=station, tickets=[_ticket_response(t) for t in tickets])


@ticket_router.get("/failed-reports", response_model=list[FailedReportResponse])
async def list_failed_reports() -> list[FailedReportResponse]:
    """Status reports that were escalated or rejected."""
    entries = current_domain.repository_for(FailedReportView)._dao.query.all().items
    return [
        FailedReportResponse(
            ticket_id=str(e.ticket_id),
            order_id=str(e.order_id),
            station=e.station,
            status=e.status,
            reason=e.reason,
            error=e.error,
            attempts=e.attempts or 0,
            failed_at=e.failed_at,
        )
        for e in entries
    ]


@ticket_router.put("/{ticket_id}/start", response_model=TicketStatusResponse)
async def start_preparation(ticket_id: str) -> TicketStatusResponse:
    status = current_domain.process(StartPreparation(ticket_id=ticket_id), asynchronous=False)
    return TicketStatusResponse(ticket_id=ticket_id, status=status)


@ticket_router.put("/{ticket_id}/finish", response_model=TicketStatusResponse)
async def finish_preparation(ticket_id: str) -> TicketStatusResponse:
    status = current_domain.process(FinishPreparation(ticket_id=ticket_id), asynchronous=False)
    return TicketStatusResponse(ticket_id=ticket_id, status=status)


@ticket_router.put("/{ticket_id}/collect", response_model=TicketStatusResponse)
async def collect_ticket(ticket_id: str) -> TicketStatusResponse:
    status = current_domain.process(CollectTicket(ticket_id=ticket_id), asynchronous=False)
    return TicketStatusResponse(ticket_id=ticket_id, status=status)


@ticket_router.put("/{ticket_id}/cancel", response_model=TicketStatusResponse)
async def cancel_ticket(ticket_id: str, body: CancelTicketRequest) -> TicketStatusResponse:
    status = current_domain.process(CancelTicket(ticket_id=ticket_id, reason=body.reason), asynchronous=False)
    return TicketStatusResponse(ticket_id=ticket_id, status=status)


@ticket_router.post("/reports/retry", response_model=RetryReportsResponse)
async def retry_reports(body: RetryReportsRequest | None = None) -> RetryReportsResponse:
    """Re-drive status reports that have not been acknowledged yet."""
    ticket_id = body.ticket_id if body else None
    reported = current_domain.process(RetryPendingReports(ticket_id=ticket_id), asynchronous=False)
    return RetryReportsResponse(reported=reported or 0)
