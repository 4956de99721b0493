"""Status reporting — push local ticket transitions to the coordinator.

``TicketReporter`` reacts to every PreparationAdvanced event and reports the
ticket's unreported transitions oldest first, each with the token minted when
it happened. Outcomes per transition:

- acknowledged (applied or duplicate): marked reported
- InvalidTransition / not found / invalid: marked rejected, never retried
- transient failures past the retry budget: escalated, and the batch stops
  so later transitions are not reported ahead of it

``RetryPendingReports`` re-drives whatever is still unreported; a background
job or an operator runs it once the coordinator is reachable again.
"""

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.delivery import RetriesExhausted, RetryPolicy, call_with_retry
from shared.errors import InvalidTransition

from stations.coordinator import get_coordinator_client
from stations.domain import stations
from stations.ticket.events import PreparationAdvanced
from stations.ticket.ticket import StationTicket

logger = structlog.get_logger(__name__)

_REJECTIONS = (InvalidTransition, ObjectNotFoundError, ValidationError)


def report_pending(ticket_id: str, policy: RetryPolicy | None = None) -> int:
    """Report a ticket's outstanding transitions. Returns how many were acknowledged."""
    repo = current_domain.repository_for(StationTicket)
    ticket = repo.get(ticket_id)
    pending = ticket.unreported_transitions()
    if not pending:
        return 0

    client = get_coordinator_client()
    policy = policy or RetryPolicy.from_env()
    reported = 0

    for transition in pending:
        attempts = 0

        def _report(transition=transition):
            nonlocal attempts
            attempts += 1
            return client.report_status(
                str(ticket.order_id),
                ticket.station,
                transition.status,
                transition.idempotency_token,
            )

        try:
            ack = call_with_retry(
                _report,
                policy,
                operation="report_status",
                order_id=str(ticket.order_id),
                station=ticket.station,
                status=transition.status,
            )
        except _REJECTIONS as exc:
            ticket.mark_rejected(transition.idempotency_token, str(exc), attempts)
            logger.warning(
                "Status report rejected by coordinator",
                ticket_id=str(ticket.id),
                order_id=str(ticket.order_id),
                station=ticket.station,
                status=transition.status,
                error=str(exc),
            )
            continue
        except RetriesExhausted as exc:
            ticket.escalate(transition.idempotency_token, str(exc.last_error), exc.attempts)
            logger.error(
                "Status report failed, retries exhausted",
                ticket_id=str(ticket.id),
                order_id=str(ticket.order_id),
                station=ticket.station,
                status=transition.status,
                attempts=exc.attempts,
                error=str(exc.last_error),
            )
            break

        ticket.mark_reported(transition.idempotency_token, attempts)
        reported += 1
        logger.info(
            "Status reported",
            ticket_id=str(ticket.id),
            order_id=str(ticket.order_id),
            station=ticket.station,
            status=transition.status,
            applied=ack.get("applied"),
        )

    repo.add(ticket)
    return reported


@stations.event_handler(part_of=StationTicket)
class TicketReporter:
    """Reports every ticket transition to the coordinator."""

    @handle(PreparationAdvanced)
    def on_preparation_advanced(self, event: PreparationAdvanced) -> None:
        report_pending(str(event.ticket_id))


@stations.command(part_of="StationTicket")
class RetryPendingReports:
    """Request to re-drive unreported transitions, for one ticket or all."""

    ticket_id = Identifier()


@stations.command_handler(part_of=StationTicket)
class RetryPendingReportsHandler:
    @handle(RetryPendingReports)
    def retry_pending(self, command):
        if command.ticket_id:
            ticket_ids = [str(command.ticket_id)]
        else:
            repo = current_domain.repository_for(StationTicket)
            ticket_ids = [str(t.id) for t in repo.find_with_unreported()]

        reported = sum(report_pending(ticket_id) for ticket_id in ticket_ids)
        logger.info("Pending report sweep complete", tickets=len(ticket_ids), reported=reported)
        return reported
