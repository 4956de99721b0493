"""HTTP coordinator client — reports over the coordination REST API."""

import os

import requests
from protean.exceptions import ObjectNotFoundError, ValidationError
from shared.errors import InvalidTransition, TransientDeliveryFailure

from stations.coordinator.port import CoordinatorClient


class HttpCoordinatorClient(CoordinatorClient):
    def __init__(self, base_url: str | None = None, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = (base_url or os.environ.get("COORDINATOR_URL", "http://localhost:8000")).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def report_status(self, order_id: str, station: str, status: str, idempotency_token: str) -> dict:
        url = f"{self.base_url}/orders/{order_id}/stations/{station}/status"
        try:
            response = self.session.put(
                url,
                json={"status": status, "idempotency_token": idempotency_token},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientDeliveryFailure(f"Coordinator unreachable at {self.base_url}: {exc}") from exc

        if response.status_code == 404:
            raise ObjectNotFoundError({"_entity": [f"No {station} task for order {order_id}"]})
        if response.status_code == 409:
            raise InvalidTransition(_error_text(response))
        if response.status_code in (400, 422):
            raise ValidationError({"status": [_error_text(response)]})
        if response.status_code >= 500:
            raise TransientDeliveryFailure(f"Coordinator returned {response.status_code}")
        response.raise_for_status()
        return response.json()


def _error_text(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    return str(body.get("error", body)) if isinstance(body, dict) else str(body)
