"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
State tracks the ids returned by the APIs so follow-up requests can
reference them.
"""

from dataclasses import dataclass, field


@dataclass
class OrderState:
    """Tracks state for a single simulated order."""

    order_id: str | None = None
    stations: list[str] = field(default_factory=list)
    ticket_ids: dict[str, str] = field(default_factory=dict)
    aggregate_status: str = "Submitted"
