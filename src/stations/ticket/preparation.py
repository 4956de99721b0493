"""Preparation — staff actions that move a ticket forward."""

import structlog
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from stations.domain import stations
from stations.ticket.ticket import StationTicket

logger = structlog.get_logger(__name__)


@stations.command(part_of="StationTicket")
class StartPreparation:
    ticket_id = Identifier(required=True)


@stations.command(part_of="StationTicket")
class FinishPreparation:
    ticket_id = Identifier(required=True)


@stations.command(part_of="StationTicket")
class CollectTicket:
    ticket_id = Identifier(required=True)


@stations.command(part_of="StationTicket")
class CancelTicket:
    ticket_id = Identifier(required=True)
    reason = String(max_length=500)


@stations.command_handler(part_of=StationTicket)
class PreparationHandler:
    @handle(StartPreparation)
    def start_preparation(self, command):
        return self._apply(command.ticket_id, lambda ticket: ticket.start())

    @handle(FinishPreparation)
    def finish_preparation(self, command):
        return self._apply(command.ticket_id, lambda ticket: ticket.finish())

    @handle(CollectTicket)
    def collect_ticket(self, command):
        return self._apply(command.ticket_id, lambda ticket: ticket.collect())

    @handle(CancelTicket)
    def cancel_ticket(self, command):
        return self._apply(command.ticket_id, lambda ticket: ticket.cancel(command.reason))

    def _apply(self, ticket_id, action):
        repo = current_domain.repository_for(StationTicket)
        ticket = repo.get(ticket_id)
        action(ticket)
        repo.add(ticket)

        logger.info(
            "Ticket status changed",
            ticket_id=str(ticket.id),
            order_id=str(ticket.order_id),
            station=ticket.station,
            status=ticket.status,
        )
        return ticket.status
