"""Coordination bounded context — order acceptance, station fan-out and status.

Owns the canonical order record and one StationTask per preparation station
present on the order. Station workers report progress back through this
context; the order's aggregate status is always derived from its tasks.
"""

from protean.domain import Domain

from coordination.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

coordination = Domain(name="coordination")
