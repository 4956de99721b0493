"""StationTask aggregate — one station's share of an order.

Each task moves forward only, driven by status reports from its station:

State Machine:
    PENDING → IN_PROGRESS → READY → COLLECTED
    {PENDING, IN_PROGRESS, READY} → CANCELLED

Every applied report carries an idempotency token. Tokens are kept in the
transition log, so a redelivered report is recognised and ignored even after
the task has moved past it.

Tasks are separate aggregates rather than children of the Order so that the
kitchen and the barista never write to the same record.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text
from shared.errors import InvalidTransition
from shared.tickets import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    PreparationStatus,
    StationKind,
    TicketLine,
    TicketMessage,
)

from coordination.domain import coordination
from coordination.order.events import (
    StationTaskAdvanced,
    StationTaskCancelled,
    StationTaskOpened,
    StationTicketPublished,
)


def parse_status(value: str) -> PreparationStatus:
    try:
        return PreparationStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown preparation status {value!r}"]}) from None


@coordination.entity(part_of="StationTask")
class StatusTransition:
    """An applied status report, kept for idempotency and audit."""

    from_status = String(required=True, max_length=20)
    to_status = String(required=True, max_length=20)
    idempotency_token = String(required=True, max_length=255)
    applied_at = DateTime(required=True)


@coordination.aggregate
class StationTask:
    order_id = Identifier(required=True)
    station = String(required=True, choices=StationKind)
    status = String(
        choices=PreparationStatus,
        default=PreparationStatus.PENDING.value,
    )
    line_item_ids = Text(required=True)  # JSON list of LineItem ids
    items = Text(required=True)  # JSON list of ticket lines
    last_token = String(max_length=255)
    transitions = HasMany(StatusTransition)

    # Fan-out bookkeeping
    ticket_published = Boolean(default=False)
    ticket_message_id = String(max_length=255)
    publish_attempts = Integer(default=0)
    published_at = DateTime()

    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, order_id: str, station: StationKind, line_items: list):
        """Open a pending task for the given station's line items."""
        now = datetime.now(UTC)
        lines = [
            {
                "line_item_id": str(item.id),
                "product_ref": item.product_ref,
                "quantity": item.quantity,
            }
            for item in line_items
        ]
        task = cls(
            order_id=order_id,
            station=station.value,
            status=PreparationStatus.PENDING.value,
            line_item_ids=json.dumps([line["line_item_id"] for line in lines]),
            items=json.dumps(lines),
            ticket_published=False,
            publish_attempts=0,
            created_at=now,
            updated_at=now,
        )
        task.raise_(
            StationTaskOpened(
                task_id=str(task.id),
                order_id=order_id,
                station=station.value,
                items=task.items,
                opened_at=now,
            )
        )
        return task

    @property
    def is_terminal(self) -> bool:
        return PreparationStatus(self.status) in TERMINAL_STATUSES

    def has_applied(self, token: str) -> bool:
        return any(t.idempotency_token == token for t in (self.transitions or []))

    # -------------------------------------------------------------------
    # Status reports
    # -------------------------------------------------------------------
    def apply_status(self, new_status: str, token: str) -> bool:
        """Apply a station's status report.

        Returns False, without touching the task, when the token was applied
        before. Raises InvalidTransition when the report would move the task
        backwards, sideways or out of a terminal state.
        """
        if not token:
            raise ValidationError({"idempotency_token": ["An idempotency token is required"]})
        if self.has_applied(token):
            return False

        target = parse_status(new_status)
        if target == PreparationStatus.CANCELLED:
            self.cancel(token)
            return True

        current = PreparationStatus(self.status)
        self._assert_can_transition(current, target)

        now = datetime.now(UTC)
        self._record(current, target, token, now)
        self.raise_(
            StationTaskAdvanced(
                task_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                previous_status=current.value,
                status=target.value,
                idempotency_token=token,
                advanced_at=now,
            )
        )
        return True

    def cancel(self, token: str) -> None:
        """Cancel the task from any state short of Collected."""
        current = PreparationStatus(self.status)
        self._assert_can_transition(current, PreparationStatus.CANCELLED)

        now = datetime.now(UTC)
        self._record(current, PreparationStatus.CANCELLED, token, now)
        self.raise_(
            StationTaskCancelled(
                task_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                previous_status=current.value,
                idempotency_token=token,
                cancelled_at=now,
            )
        )

    def _assert_can_transition(self, current: PreparationStatus, target: PreparationStatus) -> None:
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot move {self.station} task from {current.value} to {target.value}")

    def _record(self, current, target, token, now) -> None:
        self.add_transitions(
            StatusTransition(
                from_status=current.value,
                to_status=target.value,
                idempotency_token=token,
                applied_at=now,
            )
        )
        self.status = target.value
        self.last_token = token
        self.updated_at = now

    # -------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------
    def ticket_message(self) -> TicketMessage:
        return TicketMessage(
            order_id=str(self.order_id),
            task_id=str(self.id),
            station=self.station,
            items=[TicketLine(**line) for line in json.loads(self.items)],
        )

    def mark_published(self, message_id: str, attempts: int) -> None:
        """Set the durable published flag once the topic has the ticket."""
        if self.ticket_published:
            return

        now = datetime.now(UTC)
        self.ticket_published = True
        self.ticket_message_id = message_id
        self.publish_attempts = (self.publish_attempts or 0) + attempts
        self.published_at = now
        self.raise_(
            StationTicketPublished(
                task_id=str(self.id),
                order_id=str(self.order_id),
                station=self.station,
                message_id=message_id,
                attempts=self.publish_attempts,
                published_at=now,
            )
        )

    def record_publish_failure(self, attempts: int) -> None:
        self.publish_attempts = (self.publish_attempts or 0) + attempts
        self.updated_at = datetime.now(UTC)
