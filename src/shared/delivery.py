"""Bounded retry for transport calls (ticket publish, status report).

Modelled on a workflow retry policy: each failed attempt waits
``initial_interval * backoff_coefficient ** (attempt - 1)`` seconds, capped at
``maximum_interval``, until ``maximum_attempts`` have been made. Only
``TransientDeliveryFailure`` is retried; anything else propagates at once.
"""

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from shared.errors import TransientDeliveryFailure

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    maximum_attempts: int = 5
    initial_interval: float = 0.5
    backoff_coefficient: float = 2.0
    maximum_interval: float = 10.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = self.initial_interval * (self.backoff_coefficient ** (attempt - 1))
        return min(delay, self.maximum_interval)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            maximum_attempts=int(os.environ.get("DELIVERY_MAX_ATTEMPTS", "5")),
            initial_interval=float(os.environ.get("DELIVERY_INITIAL_INTERVAL", "0.5")),
            backoff_coefficient=float(os.environ.get("DELIVERY_BACKOFF_COEFFICIENT", "2.0")),
            maximum_interval=float(os.environ.get("DELIVERY_MAX_INTERVAL", "10.0")),
        )


class RetriesExhausted(TransientDeliveryFailure):
    """Every attempt allowed by the policy failed."""

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        super().__init__(f"{operation} failed after {attempts} attempt(s): {last_error}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    operation: str,
    sleep: Callable[[float], None] = time.sleep,
    **log_context,
) -> T:
    """Call ``fn`` until it succeeds or the policy's attempts are used up."""
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except TransientDeliveryFailure as exc:
            if attempt >= policy.maximum_attempts:
                raise RetriesExhausted(operation, attempt, exc) from exc

            delay = policy.delay_for(attempt)
            logger.warning(
                "Transient delivery failure, retrying",
                operation=operation,
                attempt=attempt,
                retry_in=delay,
                error=str(exc),
                **log_context,
            )
            sleep(delay)
