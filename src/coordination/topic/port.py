"""Ticket topic port — the durable channel between coordinator and stations.

One logical topic carries every station's ticket. Each station reads through
its own subscription, which keeps its own cursor and its own list of
delivered but unacknowledged messages. A message that is not acknowledged is
delivered again, so consumers must tolerate duplicates.
"""

from abc import ABC, abstractmethod

from shared.tickets import TicketMessage


class TicketTopic(ABC):
    """Abstract interface for ticket topic adapters."""

    @abstractmethod
    def publish(self, message: TicketMessage) -> str:
        """Append a message to the topic.

        Returns:
            The message id assigned by the topic.

        Raises:
            TransientDeliveryFailure when the topic cannot be reached.
        """
        ...

    @abstractmethod
    def read(self, subscription: str, count: int = 10, block: float | None = None) -> list[tuple[str, TicketMessage]]:
        """Deliver up to ``count`` messages to a subscription.

        Unacknowledged messages due for redelivery come first, then new ones.
        ``block`` is the number of seconds to wait when nothing is available.
        """
        ...

    @abstractmethod
    def ack(self, subscription: str, message_id: str) -> None:
        """Acknowledge a delivered message so it is not delivered again."""
        ...
