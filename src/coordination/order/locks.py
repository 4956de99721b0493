"""Striped locks serialising writes to a station task within this process.

A fixed pool of re-entrant locks. A given (order_id, station) always maps to
the same stripe, so memory stays constant however many orders pass through;
unrelated tasks that share a stripe simply wait for each other.

Multi-task holders go through ``task_locks``, which takes stripes in index
order.
"""

import threading
import zlib
from contextlib import ExitStack, contextmanager

STRIPES = 64

_stripes = tuple(threading.RLock() for _ in range(STRIPES))


def stripe_index(order_id: str, station: str) -> int:
    return zlib.crc32(f"{order_id}:{station}".encode()) % STRIPES


def task_lock(order_id: str, station: str):
    """The lock guarding one station task."""
    return _stripes[stripe_index(str(order_id), station)]


@contextmanager
def task_locks(order_id: str, stations):
    """Hold the locks of several tasks of one order at once."""
    indexes = sorted({stripe_index(str(order_id), station) for station in stations})
    with ExitStack() as stack:
        for index in indexes:
            stack.enter_context(_stripes[index])
        yield
