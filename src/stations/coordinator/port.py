"""Coordinator client port — how a station reports status to the coordinator.

All adapters raise the same errors so the reporter can decide what to retry:

- ObjectNotFoundError: the coordinator has no task for (order, station)
- InvalidTransition: the status would move the task backwards
- ValidationError: the report itself is malformed
- TransientDeliveryFailure: the coordinator could not be reached; retry
"""

from abc import ABC, abstractmethod


class CoordinatorClient(ABC):
    """Abstract interface for coordinator client adapters."""

    @abstractmethod
    def report_status(self, order_id: str, station: str, status: str, idempotency_token: str) -> dict:
        """Report a station status change.

        Returns:
            dict with keys: applied (bool), status (str)
        """
        ...
