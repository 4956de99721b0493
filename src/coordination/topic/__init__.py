"""Ticket topic abstraction — pluggable fan-out transport."""

import os

_topic_instance = None


def get_topic():
    """Return the configured ticket topic (singleton).

    Uses the in-memory topic by default. Set TICKET_TOPIC=redis to use
    Redis Streams at REDIS_URL.
    """
    global _topic_instance
    if _topic_instance is None:
        adapter = os.environ.get("TICKET_TOPIC", "memory")
        if adapter == "memory":
            from coordination.topic.memory_adapter import InMemoryTicketTopic

            _topic_instance = InMemoryTicketTopic()
        elif adapter == "redis":
            from coordination.topic.redis_adapter import RedisTicketTopic

            _topic_instance = RedisTicketTopic()
        else:
            raise ValueError(f"Unknown ticket topic adapter: {adapter}")
    return _topic_instance


def set_topic(topic):
    """Install a specific topic instance (useful for testing)."""
    global _topic_instance
    _topic_instance = topic


def reset_topic():
    """Reset the topic singleton (useful for testing)."""
    global _topic_instance
    _topic_instance = None
