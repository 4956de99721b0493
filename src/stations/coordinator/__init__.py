"""Coordinator client abstraction — how stations reach the coordinator."""

import os

_client_instance = None


def get_coordinator_client():
    """Return the configured coordinator client (singleton).

    Uses the in-process client by default. Set COORDINATOR_CLIENT to "http"
    (with COORDINATOR_URL) when stations run apart from the coordinator.
    """
    global _client_instance
    if _client_instance is None:
        adapter = os.environ.get("COORDINATOR_CLIENT", "local")
        if adapter == "local":
            from stations.coordinator.local_adapter import LocalCoordinatorClient

            _client_instance = LocalCoordinatorClient()
        elif adapter == "http":
            from stations.coordinator.http_adapter import HttpCoordinatorClient

            _client_instance = HttpCoordinatorClient()
        elif adapter == "fake":
            from stations.coordinator.fake_adapter import FakeCoordinatorClient

            _client_instance = FakeCoordinatorClient()
        else:
            raise ValueError(f"Unknown coordinator client: {adapter}")
    return _client_instance


def set_coordinator_client(client):
    """Install a specific client instance (useful for testing)."""
    global _client_instance
    _client_instance = client


def reset_coordinator_client():
    """Reset the client singleton (useful for testing)."""
    global _client_instance
    _client_instance = None
