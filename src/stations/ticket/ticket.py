"""StationTicket aggregate — a station's local record of an order to prepare.

A ticket is created when the station receives its fan-out copy of an order.
Staff then move it through preparation; every move is recorded as a
TicketTransition with its own idempotency token, minted once and reused for
every attempt to report that move to the coordinator.

State Machine:
    PENDING → IN_PROGRESS → READY → COLLECTED
    {PENDING, IN_PROGRESS, READY} → CANCELLED
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text
from shared.errors import InvalidTransition
from shared.tickets import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    PreparationStatus,
    StationKind,
    TicketMessage,
)

from stations.domain import stations
from stations.ticket.events import (
    PreparationAdvanced,
    StatusReported,
    StatusReportEscalated,
    StatusReportRejected,
    TicketReceived,
)


@stations.entity(part_of="StationTicket")
class TicketTransition:
    """A local status change and the state of its report to the coordinator."""

    sequence = Integer(required=True, min_value=1)
    status = String(required=True, max_length=20)
    idempotency_token = String(required=True, max_length=64)
    reported = Boolean(default=False)
    rejected = Boolean(default=False)
    report_attempts = Integer(default=0)
    last_error = String(max_length=1000)
    occurred_at = DateTime(required=True)
    reported_at = DateTime()


@stations.aggregate
class StationTicket:
    order_id = Identifier(required=True)
    task_id = Identifier()
    station = String(required=True, choices=StationKind)
    items = Text(required=True)  # JSON list of ticket lines
    message_id = String(max_length=255)
    status = String(
        choices=PreparationStatus,
        default=PreparationStatus.PENDING.value,
    )
    transitions = HasMany(TicketTransition)
    cancellation_reason = String(max_length=500)
    received_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def receive(cls, message: TicketMessage, message_id: str | None = None):
        """Create a pending ticket from a fan-out message."""
        now = datetime.now(UTC)
        items = json.dumps([line.model_dump() for line in message.items])
        ticket = cls(
            order_id=message.order_id,
            task_id=message.task_id,
            station=message.station,
            items=items,
            message_id=message_id,
            status=PreparationStatus.PENDING.value,
            received_at=now,
            updated_at=now,
        )
        ticket.raise_(
            TicketReceived(
                ticket_id=str(ticket.id),
                order_id=message.order_id,
                station=message.station,
                items=items,
                message_id=message_id,
                received_at=now,
            )
        )
        return ticket

    @property
    def is_open(self) -> bool:
        return PreparationStatus(self.status) not in TERMINAL_STATUSES

    # -------------------------------------------------------------------
    # Staff actions
    # -------------------------------------------------------------------
    def start(self) -> None:
        self._advance(PreparationStatus.IN_PROGRESS)

    def finish(self) -> None:
        self._advance(PreparationStatus.READY)

    def collect(self) -> None:
        self._advance(PreparationStatus.COLLECTED)

    def cancel(self, reason: str | None = None) -> None:
        self._advance(PreparationStatus.CANCELLED)
        self.cancellation_reason = reason

    def _advance(self, target: PreparationStatus) -> None:
        current = PreparationStatus(self.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move {self.station} ticket from {current.value} to {target.value}")

        now = datetime.now(UTC)
        token = uuid4().hex
        self.add_transitions(
            TicketTransition(
                sequence=len(self.transitions or []) + 1,
                status=target.value,
                idempotency_token=token,
                reported=False,
                rejected=False,
                report_attempts=0,
                occurred_at=now,
            )
        )
        self.status = target.value
        self.updated_at = now
        self.raise_(
            PreparationAdvanced(
                ticket_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                status=target.value,
                idempotency_token=token,
                occurred_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------
    def unreported_transitions(self) -> list[TicketTransition]:
        """Transitions still to be reported, oldest first."""
        pending = [t for t in (self.transitions or []) if not t.reported and not t.rejected]
        return sorted(pending, key=lambda t: t.sequence)

    def transition_for(self, token: str) -> TicketTransition:
        for transition in self.transitions or []:
            if transition.idempotency_token == token:
                return transition
        raise KeyError(token)

    def mark_reported(self, token: str, attempts: int) -> None:
        now = datetime.now(UTC)
        transition = self.transition_for(token)
        transition.reported = True
        transition.report_attempts = (transition.report_attempts or 0) + attempts
        transition.last_error = None
        transition.reported_at = now
        self.raise_(
            StatusReported(
                ticket_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                status=transition.status,
                idempotency_token=token,
                attempts=transition.report_attempts,
                reported_at=now,
            )
        )

    def mark_rejected(self, token: str, error: str, attempts: int = 1) -> None:
        now = datetime.now(UTC)
        transition = self.transition_for(token)
        transition.rejected = True
        transition.report_attempts = (transition.report_attempts or 0) + attempts
        transition.last_error = error
        self.raise_(
            StatusReportRejected(
                ticket_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                status=transition.status,
                idempotency_token=token,
                error=error,
                rejected_at=now,
            )
        )

    def escalate(self, token: str, error: str, attempts: int) -> None:
        """Record a report that ran out of retries. Local status is kept."""
        now = datetime.now(UTC)
        transition = self.transition_for(token)
        transition.report_attempts = (transition.report_attempts or 0) + attempts
        transition.last_error = error
        self.raise_(
            StatusReportEscalated(
                ticket_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                status=transition.status,
                idempotency_token=token,
                attempts=transition.report_attempts,
                error=error,
                escalated_at=now,
            )
        )
