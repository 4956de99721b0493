"""Repository for StationTask, with lookups by order and a guarded save."""

from protean.exceptions import ObjectNotFoundError
from shared.errors import TransientDeliveryFailure

from coordination.domain import coordination
from coordination.order.station_task import StationTask


class ConcurrentTaskUpdate(TransientDeliveryFailure):
    """The task changed in the store between load and save."""


@coordination.repository(part_of=StationTask)
class StationTaskRepository:
    def find_for(self, order_id: str, station: str) -> StationTask:
        """The task for one station of an order. Raises ObjectNotFoundError."""
        task = self._dao.query.filter(order_id=str(order_id), station=station).all().first
        if task is None:
            raise ObjectNotFoundError({"_entity": [f"No {station} task for order {order_id}"]})
        return task

    def find_by_order(self, order_id: str) -> list[StationTask]:
        return self._dao.query.filter(order_id=str(order_id)).all().items

    def find_unpublished(self) -> list[StationTask]:
        return self._dao.query.filter(ticket_published=False).all().items

    def save_transition(self, task: StationTask, expected_token: str | None) -> None:
        """Save ``task`` only if the stored ``last_token`` is still ``expected_token``.

        Guards against another process applying a report to the same task
        between our load and this save.
        """
        stored = self._dao.query.filter(id=str(task.id)).all().first
        stored_token = stored.last_token if stored is not None else None
        if (stored_token or None) != (expected_token or None):
            raise ConcurrentTaskUpdate(f"{task.station} task {task.id} was updated concurrently")
        self.add(task)
