"""Order cancellation — cancels every station task that is not yet finished.

Each task is cancelled through the same idempotent transition used for
station reports, with a per-station token derived from the caller's token.
Collected tasks are left as they are.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from shared.tickets import StationKind

from coordination.domain import coordination
from coordination.order.locks import task_locks
from coordination.order.order import Order
from coordination.order.station_task import StationTask
from coordination.utils.logging import get_logger

logger = get_logger(__name__)


def station_token(token: str, station: str) -> str:
    return f"{token}:{station}"


@coordination.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    idempotency_token = String(required=True, max_length=200)
    reason = String(max_length=500)


@coordination.command_handler(part_of=Order)
class OrderCancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        repo = current_domain.repository_for(StationTask)

        cancelled = []
        for task in repo.find_by_order(str(order.id)):
            token = station_token(command.idempotency_token, task.station)
            if task.has_applied(token):
                cancelled.append(task.station)
                continue
            if task.is_terminal:
                continue

            expected_token = task.last_token
            task.cancel(token)
            repo.save_transition(task, expected_token)
            cancelled.append(task.station)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            stations=cancelled,
            reason=command.reason,
        )
        return cancelled


def cancel_order(order_id: str, idempotency_token: str, reason: str | None = None) -> list[str]:
    """Cancel an order's unfinished station tasks. Returns the stations cancelled."""
    with task_locks(order_id, [s.value for s in StationKind]):
        return current_domain.process(
            CancelOrder(order_id=str(order_id), idempotency_token=idempotency_token, reason=reason),
            asynchronous=False,
        )
