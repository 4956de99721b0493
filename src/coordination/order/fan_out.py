"""Station ticket fan-out.

``TicketDispatcher`` publishes a station's ticket when its task is opened.
The publish runs on the fan-out pool, off the thread that committed the
order, so a slow or failing topic never holds up order submission
(``FAN_OUT_DISPATCH=inline`` publishes on the committing thread instead).

Publishing is retried with backoff; once the topic has the message the task's
durable ``ticket_published`` flag is set. If every attempt fails the task
stays unpublished and is picked up by ``RepublishPendingTickets``, which a
background job runs periodically.
"""

import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from protean.fields import Integer
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.delivery import RetriesExhausted, RetryPolicy, call_with_retry

from coordination.domain import coordination
from coordination.order.events import StationTaskOpened
from coordination.order.locks import task_lock
from coordination.order.repository import ConcurrentTaskUpdate
from coordination.order.station_task import StationTask
from coordination.topic import get_topic
from coordination.utils.logging import get_logger

logger = get_logger(__name__)

BOOKKEEPING_ATTEMPTS = 3


def _record_outcome(task_id: str, update) -> StationTask:
    """Apply ``update`` to the stored task and save it without losing a report.

    Runs under the task's lock and saves through the ``last_token`` check, so
    a status report committed since the load (here or in another process)
    is re-read rather than overwritten.
    """
    repo = current_domain.repository_for(StationTask)
    task = repo.get(task_id)

    with task_lock(str(task.order_id), task.station):
        for attempt in range(1, BOOKKEEPING_ATTEMPTS + 1):
            task = repo.get(task_id)
            expected_token = task.last_token
            update(task)
            try:
                repo.save_transition(task, expected_token)
                return task
            except ConcurrentTaskUpdate:
                if attempt == BOOKKEEPING_ATTEMPTS:
                    raise
                logger.warning(
                    "Task changed during fan-out bookkeeping, reloading",
                    order_id=str(task.order_id),
                    station=task.station,
                    attempt=attempt,
                )


def publish_ticket(task_id: str, policy: RetryPolicy | None = None) -> bool:
    """Publish one task's ticket and mark it published. Returns success."""
    repo = current_domain.repository_for(StationTask)
    task = repo.get(task_id)
    if task.ticket_published:
        return True

    topic = get_topic()
    message = task.ticket_message()
    attempts = 0

    def _publish():
        nonlocal attempts
        attempts += 1
        return topic.publish(message)

    try:
        message_id = call_with_retry(
            _publish,
            policy or RetryPolicy.from_env(),
            operation="publish_ticket",
            order_id=str(task.order_id),
            station=task.station,
        )
    except RetriesExhausted as exc:
        task = _record_outcome(task_id, lambda t: t.record_publish_failure(exc.attempts))
        logger.error(
            "Ticket publish failed, retries exhausted",
            order_id=str(task.order_id),
            task_id=str(task.id),
            station=task.station,
            attempts=exc.attempts,
            error=str(exc.last_error),
        )
        return False

    task = _record_outcome(task_id, lambda t: t.mark_published(message_id, attempts))
    logger.info(
        "Station ticket published",
        order_id=str(task.order_id),
        station=task.station,
        message_id=message_id,
        attempts=attempts,
    )
    return True


class FanOutPool:
    """Publishes tickets on worker threads, each inside the domain's context."""

    def __init__(self, domain, max_workers: int = 4):
        self.domain = domain
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fan-out")
        self._outstanding: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, task_id: str) -> Future:
        future = self._executor.submit(self._publish, task_id)
        with self._lock:
            self._outstanding.add(future)
        future.add_done_callback(self._forget)
        return future

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for every submitted publish. Returns False on timeout."""
        with self._lock:
            outstanding = list(self._outstanding)
        _, not_done = wait(outstanding, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._outstanding.discard(future)

    def _publish(self, task_id: str) -> bool:
        with self.domain.domain_context():
            try:
                return publish_ticket(task_id)
            except Exception:
                # The task stays unpublished; the republish sweep retries it
                logger.exception("Background ticket publish failed", task_id=task_id)
                return False


_pool_instance = None


def get_fan_out_pool() -> FanOutPool:
    global _pool_instance
    if _pool_instance is None:
        _pool_instance = FanOutPool(coordination)
    return _pool_instance


def reset_fan_out_pool() -> None:
    global _pool_instance
    if _pool_instance is not None:
        _pool_instance.shutdown()
    _pool_instance = None


def dispatch_mode() -> str:
    return os.environ.get("FAN_OUT_DISPATCH", "background")


@coordination.event_handler(part_of=StationTask)
class TicketDispatcher:
    """Fans an opened task out to its station's subscription."""

    @handle(StationTaskOpened)
    def on_task_opened(self, event: StationTaskOpened) -> None:
        if dispatch_mode() == "inline":
            publish_ticket(str(event.task_id))
        else:
            get_fan_out_pool().submit(str(event.task_id))


@coordination.command(part_of="StationTask")
class RepublishPendingTickets:
    """Request to publish every ticket whose publish has not succeeded yet."""

    limit = Integer(min_value=1)


@coordination.command_handler(part_of=StationTask)
class RepublishPendingTicketsHandler:
    @handle(RepublishPendingTickets)
    def republish(self, command):
        pending = current_domain.repository_for(StationTask).find_unpublished()
        if command.limit:
            pending = pending[: command.limit]

        republished = sum(1 for task in pending if publish_ticket(str(task.id)))
        logger.info(
            "Pending ticket sweep complete",
            candidates=len(pending),
            republished=republished,
        )
        return republished
