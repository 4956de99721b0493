"""In-process coordinator client for single-process deployments and tests."""

from concurrent.futures import ThreadPoolExecutor

from stations.coordinator.port import CoordinatorClient


class LocalCoordinatorClient(CoordinatorClient):
    """Calls the coordination domain directly, on a thread of its own.

    Reports are sent while a station's unit of work is still open, and the
    domain context and unit of work stacks belong to the calling thread. The
    coordinator call therefore runs on a separate thread, which starts with
    an empty stack, pushes the coordination context and commits its own
    unit of work. The caller waits for the ack.
    """

    def __init__(self, domain=None, max_workers: int = 2):
        self._domain = domain
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="coordinator-client")

    @property
    def domain(self):
        if self._domain is None:
            from coordination.domain import coordination

            self._domain = coordination
        return self._domain

    def report_status(self, order_id: str, station: str, status: str, idempotency_token: str) -> dict:
        future = self._executor.submit(self._report, order_id, station, status, idempotency_token)
        return future.result()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _report(self, order_id, station, status, idempotency_token) -> dict:
        from coordination.order.reporting import report_station_status

        with self.domain.domain_context():
            return report_station_status(order_id, station, status, idempotency_token)
