"""Station status reports — command, handler and the locked entry point.

Stations report every transition with an idempotency token. A token the task
has already applied is acknowledged with ``applied=False`` and changes
nothing, so reporters can retry freely.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from coordination.domain import coordination
from coordination.order.locks import task_lock
from coordination.order.station_task import StationTask
from coordination.utils.logging import get_logger

logger = get_logger(__name__)


@coordination.command(part_of="StationTask")
class ReportStationStatus:
    order_id = Identifier(required=True)
    station = String(required=True, max_length=20)
    status = String(required=True, max_length=20)
    idempotency_token = String(required=True, max_length=255)


@coordination.command_handler(part_of=StationTask)
class StationReportHandler:
    @handle(ReportStationStatus)
    def report_status(self, command):
        repo = current_domain.repository_for(StationTask)
        task = repo.find_for(command.order_id, command.station)

        expected_token = task.last_token
        applied = task.apply_status(command.status, command.idempotency_token)
        if applied:
            repo.save_transition(task, expected_token)
            logger.info(
                "Station status applied",
                order_id=str(command.order_id),
                station=command.station,
                status=task.status,
            )
        else:
            logger.debug(
                "Duplicate station report ignored",
                order_id=str(command.order_id),
                station=command.station,
                idempotency_token=command.idempotency_token,
            )
        return {"applied": applied, "status": task.status}


def report_station_status(order_id: str, station: str, status: str, idempotency_token: str) -> dict:
    """Apply a station's status report, serialised per (order, station).

    Returns the ack ``{"applied": bool, "status": str}``. Raises
    ObjectNotFoundError, InvalidTransition or ValidationError.
    """
    with task_lock(order_id, station):
        return current_domain.process(
            ReportStationStatus(
                order_id=str(order_id),
                station=station,
                status=status,
                idempotency_token=idempotency_token,
            ),
            asynchronous=False,
        )
