import pytest


@pytest.fixture(autouse=True)
def _ctx(stations_domain):
    """Run every stations test inside the stations domain context."""
    with stations_domain.domain_context():
        yield
