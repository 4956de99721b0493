"""Order submission — command and handler."""

import json

from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from coordination.domain import coordination
from coordination.order.order import Order
from coordination.order.station_task import StationTask
from coordination.utils.logging import get_logger

logger = get_logger(__name__)


@coordination.command(part_of="Order")
class SubmitOrder:
    items = Text(required=True)  # JSON: list of {product_ref, quantity, station_affinity}
    payment_reference = String(max_length=255)


@coordination.command_handler(part_of=Order)
class OrderSubmissionHandler:
    @handle(SubmitOrder)
    def submit_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items

        order = Order.submit(items_data, payment_reference=command.payment_reference)
        current_domain.repository_for(Order).add(order)

        # Tasks go in the same unit of work as the order. Fan-out follows
        # from their StationTaskOpened events, not from this request.
        task_repo = current_domain.repository_for(StationTask)
        for station in order.stations():
            task_repo.add(StationTask.open(str(order.id), station, order.items_for(station)))

        logger.info(
            "Order submitted",
            order_id=str(order.id),
            stations=[s.value for s in order.stations()],
        )
        return str(order.id)
