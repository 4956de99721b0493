"""Aggregate order status, derived from the order's station tasks.

The order has no status of its own. Reading it always recomputes it from the
current StationTask records:

    no task, or every task Cancelled    → Cancelled
    every task Pending                  → Submitted
    every active task Collected         → Completed
    every active task Ready/Collected   → Ready
    anything else                       → Preparing

A cancelled task counts as acknowledged by its station, so an order never
goes back to Submitted once any station has acted on it.
"""

from enum import Enum

from protean.utils.globals import current_domain
from shared.tickets import PreparationStatus

from coordination.order.order import Order
from coordination.order.station_task import StationTask


class AggregateStatus(Enum):
    SUBMITTED = "Submitted"
    PREPARING = "Preparing"
    READY = "Ready"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


def derive_aggregate_status(statuses) -> AggregateStatus:
    """Derive the order status from its tasks' preparation statuses."""
    statuses = [PreparationStatus(s) for s in statuses]
    active = [s for s in statuses if s != PreparationStatus.CANCELLED]

    if not active:
        return AggregateStatus.CANCELLED
    if all(s == PreparationStatus.PENDING for s in statuses):
        return AggregateStatus.SUBMITTED
    if all(s == PreparationStatus.COLLECTED for s in active):
        return AggregateStatus.COMPLETED
    if all(s in (PreparationStatus.READY, PreparationStatus.COLLECTED) for s in active):
        return AggregateStatus.READY
    return AggregateStatus.PREPARING


def station_entry(task: StationTask) -> dict:
    return {
        "station": task.station,
        "status": task.status,
        "ticket_published": bool(task.ticket_published),
        "updated_at": task.updated_at,
    }


def get_order_status(order_id: str) -> dict:
    """Current aggregate status of an order. Raises ObjectNotFoundError."""
    order = current_domain.repository_for(Order).get(order_id)
    tasks = current_domain.repository_for(StationTask).find_by_order(order_id)

    # Stations in the order they first appear on the order
    rank = {station.value: index for index, station in enumerate(order.stations())}
    tasks = sorted(tasks, key=lambda t: rank.get(t.station, len(rank)))

    return {
        "order_id": str(order.id),
        "aggregate_status": derive_aggregate_status(t.status for t in tasks).value,
        "stations": [station_entry(t) for t in tasks],
    }
