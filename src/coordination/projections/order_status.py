"""Order status view — cached aggregate status per order.

Every row is recomputed from the committed Order and StationTasks rather than
patched from event payloads, so events may arrive in any order.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from coordination.domain import coordination
from coordination.order.events import (
    OrderSubmitted,
    StationTaskAdvanced,
    StationTaskCancelled,
    StationTaskOpened,
    StationTicketPublished,
)
from coordination.order.order import Order
from coordination.order.station_task import StationTask
from coordination.order.status import derive_aggregate_status


@coordination.projection
class OrderStatusView:
    order_id = Identifier(identifier=True, required=True)
    aggregate_status = String(required=True)
    kitchen_status = String()
    barista_status = String()
    item_count = Integer(default=0)
    submitted_at = DateTime()
    updated_at = DateTime()


def refresh_order_status(order_id: str, occurred_at=None) -> None:
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        return
    tasks = current_domain.repository_for(StationTask).find_by_order(order_id)
    statuses = {task.station: task.status for task in tasks}

    repo = current_domain.repository_for(OrderStatusView)
    try:
        view = repo.get(order_id)
    except ObjectNotFoundError:
        view = OrderStatusView(order_id=order_id, aggregate_status="Submitted")

    view.aggregate_status = derive_aggregate_status(statuses.values()).value
    view.kitchen_status = statuses.get("kitchen")
    view.barista_status = statuses.get("barista")
    view.item_count = len(order.items or [])
    view.submitted_at = order.submitted_at
    view.updated_at = occurred_at or order.submitted_at
    repo.add(view)


@coordination.projector(projector_for=OrderStatusView, aggregates=[Order, StationTask])
class OrderStatusProjector:
    @on(OrderSubmitted)
    def on_order_submitted(self, event):
        refresh_order_status(str(event.order_id), event.submitted_at)

    @on(StationTaskOpened)
    def on_task_opened(self, event):
        refresh_order_status(str(event.order_id), event.opened_at)

    @on(StationTicketPublished)
    def on_ticket_published(self, event):
        refresh_order_status(str(event.order_id), event.published_at)

    @on(StationTaskAdvanced)
    def on_task_advanced(self, event):
        refresh_order_status(str(event.order_id), event.advanced_at)

    @on(StationTaskCancelled)
    def on_task_cancelled(self, event):
        refresh_order_status(str(event.order_id), event.cancelled_at)
