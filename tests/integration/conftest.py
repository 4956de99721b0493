"""Fixtures for end-to-end tests across the coordination and stations contexts.

Stations report through the in-process coordinator client, so a status
change made at a station lands on the coordinator's task in the same test.
"""

import pytest
from shared.tickets import StationKind


@pytest.fixture(autouse=True)
def coordinator_client(coordination_domain):
    """Route station reports to the real coordinator (overrides the fake)."""
    from stations.coordinator import reset_coordinator_client, set_coordinator_client
    from stations.coordinator.local_adapter import LocalCoordinatorClient

    client = LocalCoordinatorClient(domain=coordination_domain)
    set_coordinator_client(client)
    yield client
    reset_coordinator_client()
    client.close()


@pytest.fixture
def workers(ticket_topic):
    """One worker per station, polled by hand."""
    from stations.worker import StationWorker

    return {station.value: StationWorker(station, topic=ticket_topic) for station in StationKind}
