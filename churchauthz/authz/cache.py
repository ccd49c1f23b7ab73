"""
Process-wide role -> permissions cache with TTL.

Entries expire lazily: the timestamp is checked on every read, there is no
sweeper. Role writes call ``invalidate``/``clear`` right after committing.

A reader that misses, loads from the store and then fills the cache could race
a concurrent role update: its load may predate the commit while its fill lands
after the invalidation. Fills are therefore tagged with the generation observed
*before* loading and are dropped if any invalidation happened in between.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    permissions: frozenset[str]
    expires_at: float


class PermissionCache:
    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}
        self._generation = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def generation(self) -> int:
        """Token to pass to ``put`` after a store load."""
        with self._lock:
            return self._generation

    def get(self, role_key: str) -> frozenset[str] | None:
        """Return cached permissions, or None on miss / expiry."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(role_key)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[role_key]
                return None
            return entry.permissions

    def put(self, role_key: str, permissions: frozenset[str], generation: int) -> bool:
        """
        Store permissions loaded while the cache was at ``generation``.

        Returns False (and stores nothing) if an invalidation happened since.
        """

        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping stale permission fill role=%s", role_key)
                return False
            self._entries[role_key] = _Entry(frozenset(permissions), self._clock() + self._ttl)
            return True

    def invalidate(self, role_key: str) -> None:
        with self._lock:
            self._entries.pop(role_key, None)
            self._generation += 1
        logger.debug("Permission cache invalidated role=%s", role_key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
        logger.debug("Permission cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
