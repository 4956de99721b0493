"""Stations domain events — facts about preparation tickets and their reports."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from stations.domain import stations


@stations.event(part_of="StationTicket")
class TicketReceived:
    """A station's copy of an order arrived from the ticket topic."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    items = Text(required=True)  # JSON list of ticket lines
    message_id = String()
    received_at = DateTime(required=True)


@stations.event(part_of="StationTicket")
class PreparationAdvanced:
    """Staff moved a ticket to a new preparation status."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    status = String(required=True)
    idempotency_token = String(required=True)
    occurred_at = DateTime(required=True)


@stations.event(part_of="StationTicket")
class StatusReported:
    """The coordinator acknowledged a status report."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    status = String(required=True)
    idempotency_token = String(required=True)
    attempts = Integer(required=True)
    reported_at = DateTime(required=True)


@stations.event(part_of="StationTicket")
class StatusReportRejected:
    """The coordinator refused a status report; it will not be retried."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    status = String(required=True)
    idempotency_token = String(required=True)
    error = String(required=True)
    rejected_at = DateTime(required=True)


@stations.event(part_of="StationTicket")
class StatusReportEscalated:
    """A status report exhausted its retries and needs operator attention."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    order_id = Identifier(required=True)
    station = String(required=True)
    status = String(required=True)
    idempotency_token = String(required=True)
    attempts = Integer(required=True)
    error = String(required=True)
    escalated_at = DateTime(required=True)
