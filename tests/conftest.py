import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the config environment and make retries fast, adapters local and
    fan-out inline before any domain module is imported.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("TICKET_TOPIC", "memory")
    os.environ.setdefault("COORDINATOR_CLIENT", "fake")
    os.environ.setdefault("FAN_OUT_DISPATCH", "inline")
    os.environ.setdefault("DELIVERY_MAX_ATTEMPTS", "3")
    os.environ.setdefault("DELIVERY_INITIAL_INTERVAL", "0")
    os.environ.setdefault("DELIVERY_MAX_INTERVAL", "0")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def coordination_domain():
    """Initialize the coordination domain once per session."""
    from coordination.domain import coordination

    coordination.init()
    return coordination


@pytest.fixture(scope="session")
def stations_domain():
    """Initialize the stations domain once per session."""
    from stations.domain import stations

    stations.init()
    return stations


@pytest.fixture(scope="session", autouse=True)
def setup_databases(coordination_domain, stations_domain):
    from coordination.utils.db import drop_db, setup_db

    setup_db(coordination_domain)
    setup_db(stations_domain)

    yield

    drop_db(coordination_domain)
    drop_db(stations_domain)


def _reset_domain_data(domain):
    with domain.domain_context():
        for _, provider in domain.providers.items():
            provider._data_reset()

        for _, broker in domain.brokers.items():
            broker._data_reset()

        domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def run_around_tests(coordination_domain, stations_domain):
    """Cleanup infrastructure of both domains after every test."""
    yield

    _reset_domain_data(coordination_domain)
    _reset_domain_data(stations_domain)


@pytest.fixture(autouse=True)
def ticket_topic():
    """A fresh in-memory ticket topic for every test."""
    from coordination.topic import reset_topic, set_topic
    from coordination.topic.memory_adapter import InMemoryTicketTopic

    topic = InMemoryTicketTopic()
    set_topic(topic)
    yield topic
    reset_topic()


@pytest.fixture(autouse=True)
def coordinator_client():
    """A fresh fake coordinator client for every test."""
    from stations.coordinator import reset_coordinator_client, set_coordinator_client
    from stations.coordinator.fake_adapter import FakeCoordinatorClient

    client = FakeCoordinatorClient()
    set_coordinator_client(client)
    yield client
    reset_coordinator_client()
