import asyncio
import logging
import weakref
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

class OrderLocks:
    """Per-order mutex registry.

    Every compound mutation of an order (status + history, assignment insert +
    transition, payment completion + transition) runs while holding the lock
    for that order id, so history rows are appended in the same order as the
    status changes they describe. The database row lock taken with
    ``SELECT ... FOR UPDATE`` covers callers in other processes.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def _lock_for(self, order_id) -> asyncio.Lock:
        key = str(order_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, order_id):
        lock = self._lock_for(order_id)
        async with lock:
            logger.debug(f"Acquired order lock {order_id}")
            yield
