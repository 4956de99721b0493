"""In-memory ticket topic for tests and single-process runs.

Thread-safe. Each subscription has a cursor into the log and a pending table
of delivered, unacknowledged messages. A pending message is delivered again
once ``redeliver_after`` seconds have passed without an ack.

A message is dropped from the log once every known subscription has read
past it and none still holds it pending. Subscriptions default to one per
station; a subscription first seen after messages were dropped starts at the
oldest message still held.
"""

import itertools
import threading
import time

from shared.errors import TransientDeliveryFailure
from shared.tickets import StationKind, TicketMessage

from coordination.topic.port import TicketTopic


class InMemoryTicketTopic(TicketTopic):
    def __init__(self, redeliver_after: float = 30.0, subscriptions=None):
        self.redeliver_after = redeliver_after
        self._log: list[tuple[str, str]] = []
        self._payloads: dict[str, str] = {}
        # Absolute position of _log[0]
        self._dropped = 0
        self._cursors: dict[str, int] = {}
        self._pending: dict[str, dict[str, float]] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()
        self._arrived = threading.Condition(self._lock)
        self._failures_remaining = 0
        self.failure_reason = "Ticket topic unavailable"

        for subscription in subscriptions or [station.value for station in StationKind]:
            self._subscribe(subscription)

    def configure(self, fail_publishes: int = 0, failure_reason: str = "Ticket topic unavailable"):
        """Make the next ``fail_publishes`` publishes fail (for testing)."""
        with self._lock:
            self._failures_remaining = fail_publishes
            self.failure_reason = failure_reason

    def publish(self, message: TicketMessage) -> str:
        with self._lock:
            if self._failures_remaining:
                self._failures_remaining -= 1
                raise TransientDeliveryFailure(self.failure_reason)

            message_id = f"{int(time.time() * 1000)}-{next(self._sequence)}"
            payload = message.to_payload()
            self._log.append((message_id, payload))
            self._payloads[message_id] = payload
            self._arrived.notify_all()
            return message_id

    def read(self, subscription: str, count: int = 10, block: float | None = None) -> list[tuple[str, TicketMessage]]:
        with self._lock:
            batch = self._take(subscription, count)
            if not batch and block:
                self._arrived.wait(timeout=block)
                batch = self._take(subscription, count)
            return [(message_id, TicketMessage.from_payload(payload)) for message_id, payload in batch]

    def ack(self, subscription: str, message_id: str) -> None:
        with self._lock:
            if self._pending.get(subscription, {}).pop(message_id, None) is not None:
                self._drop_consumed()

    def _subscribe(self, subscription: str) -> None:
        if subscription not in self._cursors:
            self._cursors[subscription] = self._dropped
            self._pending[subscription] = {}

    def _take(self, subscription: str, count: int) -> list[tuple[str, str]]:
        self._subscribe(subscription)
        now = time.monotonic()
        pending = self._pending[subscription]
        batch = []

        for message_id, delivered_at in list(pending.items()):
            if len(batch) >= count:
                return batch
            if now - delivered_at >= self.redeliver_after:
                pending[message_id] = now
                batch.append((message_id, self._payloads[message_id]))

        cursor = self._cursors[subscription]
        while cursor - self._dropped < len(self._log) and len(batch) < count:
            message_id, payload = self._log[cursor - self._dropped]
            pending[message_id] = now
            batch.append((message_id, payload))
            cursor += 1
        self._cursors[subscription] = cursor
        return batch

    def _drop_consumed(self) -> None:
        horizon = min(self._cursors.values()) - self._dropped
        in_flight = set().union(*self._pending.values())

        consumed = 0
        while consumed < horizon and self._log[consumed][0] not in in_flight:
            consumed += 1
        if not consumed:
            return

        for message_id, _ in self._log[:consumed]:
            del self._payloads[message_id]
        del self._log[:consumed]
        self._dropped += consumed

    # Introspection for tests and operators
    def published(self) -> list[TicketMessage]:
        """Messages still held, oldest first."""
        with self._lock:
            return [TicketMessage.from_payload(payload) for _, payload in self._log]

    def retained(self) -> int:
        with self._lock:
            return len(self._log)

    def pending(self, subscription: str) -> list[str]:
        with self._lock:
            return list(self._pending.get(subscription, {}))
