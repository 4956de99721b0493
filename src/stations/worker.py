"""Station worker — consumes one station's tickets from the ticket topic.

Each worker reads through its own subscription. Messages meant for the other
station are acknowledged and skipped. A station's own message is acknowledged
only after its ticket is stored, so a crash between the two redelivers the
message and intake recognises the duplicate.

Workers share nothing but the topic; kitchen and barista can run as threads
in one process or as separate processes.
"""

import threading

import structlog
from shared.errors import TransientDeliveryFailure
from shared.tickets import StationKind

from stations.ticket.intake import receive_message

logger = structlog.get_logger(__name__)


class StationWorker:
    def __init__(
        self,
        station: StationKind,
        topic=None,
        domain=None,
        batch_size: int = 10,
        poll_interval: float = 1.0,
    ):
        self.station = station
        self.subscription = station.value
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self._topic = topic
        self._domain = domain
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def topic(self):
        if self._topic is None:
            from coordination.topic import get_topic

            self._topic = get_topic()
        return self._topic

    @property
    def domain(self):
        if self._domain is None:
            from stations.domain import stations

            self._domain = stations
        return self._domain

    def poll_once(self, block: float | None = None) -> int:
        """Read one batch and store this station's tickets. Returns tickets stored."""
        batch = self.topic.read(self.subscription, count=self.batch_size, block=block)
        stored = 0
        for message_id, message in batch:
            if message.station != self.station.value:
                self.topic.ack(self.subscription, message_id)
                continue

            try:
                with self.domain.domain_context():
                    ticket_id = receive_message(message_id, message)
            except Exception:
                # Left unacknowledged; the topic delivers it again
                logger.exception(
                    "Ticket intake failed",
                    station=self.station.value,
                    order_id=message.order_id,
                    message_id=message_id,
                )
                continue

            self.topic.ack(self.subscription, message_id)
            stored += 1
            logger.debug(
                "Ticket acknowledged",
                station=self.station.value,
                ticket_id=ticket_id,
                message_id=message_id,
            )
        return stored

    def start(self) -> None:
        """Run the poll loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=f"StationWorker-{self.station.value}", daemon=True)
        self._thread.start()
        logger.info("Station worker started", station=self.station.value)

    def stop(self, join: bool = True, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if join and self._thread is not None:
            self._thread.join(timeout=timeout)
        logger.info("Station worker stopped", station=self.station.value)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        # Every log line from this thread carries the station
        structlog.contextvars.bind_contextvars(station=self.station.value)
        while not self._stop_event.is_set():
            try:
                self.poll_once(block=self.poll_interval)
            except TransientDeliveryFailure as exc:
                logger.warning("Ticket topic unavailable", station=self.station.value, error=str(exc))
                self._stop_event.wait(self.poll_interval)
