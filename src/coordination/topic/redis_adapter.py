"""Redis Streams ticket topic.

The topic is a single stream. Each station subscription is a consumer group
on it, so kitchen and barista keep independent cursors and pending lists.
Messages left unacknowledged for ``redeliver_after`` seconds are reclaimed
with XAUTOCLAIM and delivered again.
"""

import os
import socket

import redis
import structlog
from shared.errors import TransientDeliveryFailure
from shared.tickets import TICKET_TOPIC, TicketMessage

from coordination.topic.port import TicketTopic

logger = structlog.get_logger(__name__)

_TRANSPORT_ERRORS = (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)


class RedisTicketTopic(TicketTopic):
    def __init__(
        self,
        url: str | None = None,
        stream: str = TICKET_TOPIC,
        redeliver_after: float = 30.0,
        consumer: str | None = None,
    ):
        self.stream = stream
        self.redeliver_after = redeliver_after
        self.consumer = consumer or f"{socket.gethostname()}-{os.getpid()}"
        self._client = redis.Redis.from_url(url or os.environ.get("REDIS_URL", "redis://localhost:6379/0"))
        self._groups: set[str] = set()

    def publish(self, message: TicketMessage) -> str:
        try:
            message_id = self._client.xadd(self.stream, {"payload": message.to_payload()})
        except _TRANSPORT_ERRORS as exc:
            raise TransientDeliveryFailure(f"Could not publish to {self.stream}: {exc}") from exc
        return _decode(message_id)

    def read(self, subscription: str, count: int = 10, block: float | None = None) -> list[tuple[str, TicketMessage]]:
        try:
            self._ensure_group(subscription)
            entries = self._reclaim(subscription, count)
            if len(entries) < count:
                response = self._client.xreadgroup(
                    subscription,
                    self.consumer,
                    {self.stream: ">"},
                    count=count - len(entries),
                    block=int(block * 1000) if block else None,
                )
                for _stream, stream_entries in response or []:
                    entries.extend(stream_entries)
        except _TRANSPORT_ERRORS as exc:
            raise TransientDeliveryFailure(f"Could not read {self.stream} for {subscription}: {exc}") from exc

        batch = []
        for message_id, fields in entries:
            if not fields:
                # Trimmed from the stream while pending
                self.ack(subscription, _decode(message_id))
                continue
            payload = fields.get(b"payload") or fields.get("payload")
            batch.append((_decode(message_id), TicketMessage.from_payload(payload)))
        return batch

    def ack(self, subscription: str, message_id: str) -> None:
        try:
            self._client.xack(self.stream, subscription, message_id)
        except _TRANSPORT_ERRORS as exc:
            raise TransientDeliveryFailure(f"Could not ack {message_id} on {self.stream}: {exc}") from exc

    def _ensure_group(self, subscription: str) -> None:
        if subscription in self._groups:
            return
        try:
            self._client.xgroup_create(self.stream, subscription, id="0", mkstream=True)
            logger.info("Created ticket subscription", stream=self.stream, subscription=subscription)
        except redis.exceptions.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        self._groups.add(subscription)

    def _reclaim(self, subscription: str, count: int) -> list:
        result = self._client.xautoclaim(
            self.stream,
            subscription,
            self.consumer,
            min_idle_time=int(self.redeliver_after * 1000),
            start_id="0-0",
            count=count,
        )
        # [next_start_id, entries] or [next_start_id, entries, deleted_ids]
        return list(result[1]) if result else []


def _decode(value) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)
