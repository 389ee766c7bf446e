"""
Per-customer serialization.

Every mutating ledger operation for a customer runs while holding that
customer's lock, so two operations never check a balance against a
stale value. Across processes the same guarantee comes from
``select_for_update()`` on the balance row (see balance_store).
"""

import logging
import threading
from contextlib import contextmanager

from .exceptions import ContendedError

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class CustomerLockRegistry:
    """
    Process-wide map of customer id -> lock with bounded waits.

    An entry lives only while some thread holds or waits for its lock;
    the last one out removes it, so the map stays as small as the
    number of customers currently being written.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries = {}

    def __len__(self):
        with self._guard:
            return len(self._entries)

    def _checkout(self, key):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key, entry):
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key, timeout):
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            ContendedError: If the lock is not acquired within ``timeout``
                seconds.
        """
        key = str(key)
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=timeout):
                logger.warning("Lock wait for customer %s exceeded %.1fs", key, timeout)
                raise ContendedError(customer_id=key)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)


customer_locks = CustomerLockRegistry()
