"""Ticket intake — record a fan-out message as a local ticket.

The topic delivers at least once, so the same order can arrive more than
once. Intake is idempotent on (order_id, station): a repeat returns the
ticket already on file.
"""

import json

import structlog
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.tickets import TicketLine, TicketMessage

from stations.domain import stations
from stations.ticket.ticket import StationTicket

logger = structlog.get_logger(__name__)


@stations.command(part_of="StationTicket")
class ReceiveTicket:
    order_id = Identifier(required=True)
    task_id = Identifier()
    station = String(required=True, max_length=20)
    items = Text(required=True)  # JSON list of ticket lines
    message_id = String(max_length=255)


@stations.command_handler(part_of=StationTicket)
class TicketIntakeHandler:
    @handle(ReceiveTicket)
    def receive_ticket(self, command):
        repo = current_domain.repository_for(StationTicket)

        existing = repo.find_for(command.order_id, command.station)
        if existing is not None:
            logger.info(
                "Duplicate ticket delivery ignored",
                order_id=str(command.order_id),
                station=command.station,
                message_id=command.message_id,
            )
            return str(existing.id)

        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        message = TicketMessage(
            order_id=str(command.order_id),
            task_id=str(command.task_id) if command.task_id else "",
            station=command.station,
            items=[TicketLine(**line) for line in items],
        )
        ticket = StationTicket.receive(message, message_id=command.message_id)
        repo.add(ticket)

        logger.info(
            "Ticket received",
            ticket_id=str(ticket.id),
            order_id=str(command.order_id),
            station=command.station,
        )
        return str(ticket.id)


def receive_message(message_id: str, message: TicketMessage) -> str:
    """Store a topic message as a ticket. Returns the ticket id."""
    return current_domain.process(
        ReceiveTicket(
            order_id=message.order_id,
            task_id=message.task_id,
            station=message.station,
            items=json.dumps([line.model_dump() for line in message.items]),
            message_id=message_id,
        ),
        asynchronous=False,
    )
