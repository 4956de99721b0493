import pytest


@pytest.fixture(autouse=True)
def _ctx(coordination_domain):
    """Run every coordination test inside the coordination domain context."""
    with coordination_domain.domain_context():
        yield
