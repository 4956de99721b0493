"""Fake coordinator client — records reports, with configurable failures."""

from protean.exceptions import ObjectNotFoundError
from shared.errors import InvalidTransition, TransientDeliveryFailure

from stations.coordinator.port import CoordinatorClient


class FakeCoordinatorClient(CoordinatorClient):
    """Accepts every report by default and remembers what it was sent."""

    def __init__(self):
        self.reports: list[dict] = []
        self.configure()

    def configure(self, transient_failures: int = 0, reject_with: str | None = None):
        """Configure the fake for testing.

        ``transient_failures`` calls fail as unreachable before calls succeed
        again. ``reject_with`` is "invalid" or "not_found" to refuse reports.
        """
        self.transient_failures = transient_failures
        self.reject_with = reject_with
        self.calls = 0

    def report_status(self, order_id: str, station: str, status: str, idempotency_token: str) -> dict:
        self.calls += 1
        if self.transient_failures:
            self.transient_failures -= 1
            raise TransientDeliveryFailure("Coordinator unavailable")
        if self.reject_with == "invalid":
            raise InvalidTransition(f"Cannot move {station} task to {status}")
        if self.reject_with == "not_found":
            raise ObjectNotFoundError({"_entity": [f"No {station} task for order {order_id}"]})

        applied = not any(r["idempotency_token"] == idempotency_token for r in self.reports)
        self.reports.append(
            {
                "order_id": order_id,
                "station": station,
                "status": status,
                "idempotency_token": idempotency_token,
            }
        )
        return {"applied": applied, "status": status}
