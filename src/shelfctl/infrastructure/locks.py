"""Per-resource locks with a bounded wait.

Each book and each loan is an independently lockable resource, keyed by
``(kind, id)``. Circulation transactions take the lock before reading the
copy counter and release it on commit or rollback. A caller that cannot
get the lock within its timeout gets :class:`LockTimeout` instead of
blocking indefinitely.

Lock order is fixed: a loan lock may be held while taking a book lock,
never the reverse, and no caller holds two book locks at once.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

LockKey = tuple[str, str]


class LockTimeout(Exception):
    """Raised when a resource lock cannot be acquired in time."""

    def __init__(self, key: LockKey, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        kind, resource_id = key
        super().__init__(f"{kind} {resource_id} is busy (waited {timeout:g}s)")


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class LockRegistry:
    """Lazily created ``threading.Lock`` per resource key.

    An entry lives only while some thread holds or waits on it; the last
    one out removes it, so the registry stays as small as the set of
    resources currently in contention.
    """

    def __init__(self, default_timeout: float = 5.0) -> None:
        self._default_timeout = default_timeout
        self._guard = threading.Lock()
        self._entries: dict[LockKey, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: LockKey) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: LockKey, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def acquire(self, kind: str, resource_id: str, *, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``(kind, resource_id)`` for the duration of the block.

        Raises:
            LockTimeout: If the lock is not acquired within *timeout* seconds.
        """
        key = (kind, resource_id)
        wait = self._default_timeout if timeout is None else timeout
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=wait):
                logger.debug("Lock timeout on %s %s after %.2fs", kind, resource_id, wait)
                raise LockTimeout(key, wait)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def is_locked(self, kind: str, resource_id: str) -> bool:
        """Whether ``(kind, resource_id)`` is currently held by anyone."""
        with self._guard:
            entry = self._entries.get((kind, resource_id))
        return entry is not None and entry.lock.locked()
