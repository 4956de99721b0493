"""Failed reports — operational alert queue for status reports needing attention.

An entry appears when a report is escalated or rejected and disappears when
a later retry gets it acknowledged.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from stations.domain import stations
from stations.ticket.events import StatusReported, StatusReportEscalated, StatusReportRejected
from stations.ticket.ticket import StationTicket


@stations.projection
class FailedReportView:
    idempotency_token = Identifier(identifier=True, required=True)
    ticket_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    status = String(required=True)
    reason = String(required=True)  # "escalated" or "rejected"
    error = String(max_length=1000)
    attempts = Integer(default=0)
    failed_at = DateTime()


def _record_failure(event, reason: str, failed_at, attempts: int = 0) -> None:
    repo = current_domain.repository_for(FailedReportView)
    try:
        entry = repo.get(event.idempotency_token)
    except ObjectNotFoundError:
        entry = FailedReportView(
            idempotency_token=event.idempotency_token,
            ticket_id=event.ticket_id,
            order_id=event.order_id,
            station=event.station,
            status=event.status,
            reason=reason,
        )
    entry.reason = reason
    entry.error = event.error
    entry.attempts = attempts
    entry.failed_at = failed_at
    repo.add(entry)


@stations.projector(projector_for=FailedReportView, aggregates=[StationTicket])
class FailedReportProjector:
    @on(StatusReportEscalated)
    def on_report_escalated(self, event):
        _record_failure(event, "escalated", event.escalated_at, event.attempts)

    @on(StatusReportRejected)
    def on_report_rejected(self, event):
        _record_failure(event, "rejected", event.rejected_at)

    @on(StatusReported)
    def on_status_reported(self, event):
        repo = current_domain.repository_for(FailedReportView)
        try:
            entry = repo.get(event.idempotency_token)
        except ObjectNotFoundError:
            return
        repo._dao.delete(entry)
