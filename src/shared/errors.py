"""Errors shared by the coordination and stations contexts."""

from protean.exceptions import InvalidStateError


class TransientDeliveryFailure(Exception):
    """A publish or report call failed for transport reasons and may be retried."""


class InvalidTransition(InvalidStateError):
    """A station status change that does not follow the preparation order."""

    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message
        self.messages = {"status": [message]}

    def __str__(self) -> str:
        return self.message
