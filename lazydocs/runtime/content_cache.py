"""Keyed load cache with single-flight deduplication and explicit eviction.

Each node id owns at most one entry. An entry pairs a fingerprint with a
shared future; the future is the only thing that changes state, so entries
are immutable once settled. All map mutations go through one lock, and
:meth:`ContentCache.acquire` is the single compare-and-insert point that
decides whether a caller must start a load.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheState(str, Enum):
    ABSENT = "absent"
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """One load attempt for ``(node_id, fingerprint)`` and its shared outcome."""

    node_id: str
    fingerprint: str | None
    future: Future[T]

    @property
    def state(self) -> CacheState:
        if not self.future.done():
            return CacheState.PENDING
        if self.future.cancelled() or self.future.exception() is not None:
            return CacheState.FAILED
        return CacheState.RESOLVED


@dataclass(frozen=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    loads: int = 0
    evictions: int = 0
    size: int = 0


class ContentCache(Generic[T]):
    """Owned, lifetime-scoped cache; create one per resolver (and per test).

    ``max_entries`` bounds retained entries: when exceeded, the least
    recently used settled entries are dropped. Pending entries are never
    dropped by the bound. ``None`` means unbounded. Nothing expires on a
    timer.
    """

    def __init__(self, *, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._loads = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def acquire(self, node_id: str, fingerprint: str | None) -> tuple[CacheEntry[T], bool]:
        """Return the entry for ``(node_id, fingerprint)``, creating it if needed.

        Returns ``(entry, created)``. When ``created`` is True the caller owns
        the load and must settle ``entry.future``. A different fingerprint or
        a failed entry is superseded by a fresh pending entry.
        """
        with self._lock:
            current = self._entries.get(node_id)
            if current is not None and current.fingerprint == fingerprint and current.state is not CacheState.FAILED:
                self._entries.move_to_end(node_id)
                self._hits += 1
                return current, False

            if current is not None:
                reason = "fingerprint changed" if current.fingerprint != fingerprint else "previous load failed"
                logger.debug("superseding cache entry for %s: %s", node_id, reason)

            entry: CacheEntry[T] = CacheEntry(node_id=node_id, fingerprint=fingerprint, future=Future())
            self._entries[node_id] = entry
            self._entries.move_to_end(node_id)
            self._misses += 1
            self._loads += 1
            self._enforce_bound_locked()
            return entry, True

    def peek(self, node_id: str) -> CacheEntry[T] | None:
        with self._lock:
            return self._entries.get(node_id)

    def state(self, node_id: str, fingerprint: str | None) -> CacheState:
        entry = self.peek(node_id)
        if entry is None or entry.fingerprint != fingerprint:
            return CacheState.ABSENT
        return entry.state

    def evict(self, node_id: str) -> bool:
        """Detach the entry for ``node_id``.

        A pending load keeps running and its waiters still get the result;
        the next acquire simply starts fresh.
        """
        with self._lock:
            entry = self._entries.pop(node_id, None)
            if entry is None:
                return False
            self._evictions += 1
        logger.debug("evicted %s (%s)", node_id, entry.state.value)
        return True

    def clear(self) -> None:
        with self._lock:
            self._evictions += len(self._entries)
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                loads=self._loads,
                evictions=self._evictions,
                size=len(self._entries),
            )

    def _enforce_bound_locked(self) -> None:
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return
        for node_id in list(self._entries):
            if len(self._entries) <= self.max_entries:
                break
            if not self._entries[node_id].future.done():
                continue
            del self._entries[node_id]
            self._evictions += 1
            logger.debug("dropped %s to stay within %d entries", node_id, self.max_entries)


__all__ = [
    "CacheState",
    "CacheEntry",
    "CacheStats",
    "ContentCache",
]
