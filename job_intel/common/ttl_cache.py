"""
Memoizing TTL Cache.

Bounded in-memory key/value store with per-entry expiry and at most one
in-flight producer per key. Used for fetched job pages and for company
research payloads.

Key behaviours:
- Expired entries are evicted lazily on read and during capacity enforcement
- remember() de-duplicates concurrent producers: N callers, one producer call
- Failures are never cached; the next remember() retries
- Over capacity: purge expired entries, then the oldest-created ones

Usage:
    cache = TTLCache(default_ttl=7200, max_entries=48, name="job_pages")

    document = await cache.remember(url, lambda: fetch(url))
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 100


@dataclass
class CacheEntry(Generic[T]):
    """A stored value. Never handed out by reference."""

    value: T
    expires_at: Optional[float]  # None = never expires
    created_at: float


class _InFlight:
    """Shared producer task plus the number of callers awaiting it."""

    __slots__ = ("task", "waiters")

    def __init__(self, task: "asyncio.Task[Any]"):
        self.task = task
        self.waiters = 0


class TTLCache:
    """
    Async-aware TTL cache with in-flight de-duplication.

    All bookkeeping runs on the event loop thread, so no locks are needed.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Seconds an entry lives when set() gets no ttl.
                         None or <= 0 means entries never expire.
            max_entries: Capacity; values < 1 fall back to the default
            name: Label used in log lines
            clock: Monotonic time source (injectable for tests)
        """
        self.default_ttl = default_ttl
        self.max_entries = max_entries if max_entries and max_entries > 0 else DEFAULT_MAX_ENTRIES
        self.name = name
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, _InFlight] = {}

    def __len__(self) -> int:
        return len(self._store)

    @property
    def in_flight(self) -> int:
        """Number of keys with a producer currently running."""
        return len(self._pending)

    def _is_expired(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        if entry.expires_at is None:
            return False
        return entry.expires_at <= (self._clock() if now is None else now)

    def _get_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self._store[key]
            return None
        return entry

    def has(self, key: str) -> bool:
        """Check whether a live entry exists for key."""
        return self._get_entry(key) is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for key, or default."""
        entry = self._get_entry(key)
        return entry.value if entry is not None else default

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> T:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to store
            ttl: Seconds to live; None uses default_ttl, <= 0 never expires

        Returns:
            The stored value
        """
        effective_ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        expires_at = now + effective_ttl if effective_ttl and effective_ttl > 0 else None

        # Re-insert so dict order tracks creation order
        self._store.pop(key, None)
        self._store[key] = CacheEntry(value=value, expires_at=expires_at, created_at=now)
        self._enforce_size_limit()
        return value

    def delete(self, key: str) -> bool:
        """Drop a stored value and forget any in-flight producer for key."""
        self._pending.pop(key, None)
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Drop everything."""
        self._pending.clear()
        self._store.clear()

    def _enforce_size_limit(self) -> None:
        if len(self._store) <= self.max_entries:
            return

        now = self._clock()
        expired = [key for key, entry in self._store.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._store[key]

        if len(self._store) <= self.max_entries:
            return

        # sorted() is stable, so equal timestamps keep insertion order
        oldest_first = sorted(self._store.items(), key=lambda item: item[1].created_at)
        overflow = len(self._store) - self.max_entries
        for key, _ in oldest_first[:overflow]:
            del self._store[key]

        logger.debug(
            f"[{self.name}] Evicted {len(expired)} expired and {overflow} oldest entries"
        )

    async def remember(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        cache_if: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """
        Return the cached value for key, producing it at most once.

        - Live entry: returned immediately
        - Producer already in flight: await the same result (or failure)
        - Otherwise: start producer, store its value on success

        A caller that is cancelled stops waiting; the shared producer is only
        cancelled when no other caller is still waiting for it.

        Args:
            key: Cache key
            producer: Zero-arg coroutine function producing the value
            ttl: Seconds to live for the stored value (None = default_ttl)
            cache_if: Optional predicate; a value it rejects is returned but not stored

        Returns:
            The cached or freshly produced value

        Raises:
            Whatever the producer raises (never cached)
        """
        entry = self._get_entry(key)
        if entry is not None:
            logger.debug(f"[{self.name}] Cache hit: {key}")
            return entry.value

        flight = self._pending.get(key)
        if flight is None:
            logger.debug(f"[{self.name}] Cache miss, producing: {key}")
            flight = _InFlight(asyncio.ensure_future(self._produce(key, producer, ttl, cache_if)))
            self._pending[key] = flight
        else:
            logger.debug(f"[{self.name}] Joining in-flight producer: {key}")

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                logger.debug(f"[{self.name}] Last waiter left, cancelling producer: {key}")
                # Unregister first so a caller arriving now starts a fresh producer
                if self._pending.get(key) is flight:
                    del self._pending[key]
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    async def _produce(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: Optional[float],
        cache_if: Optional[Callable[[T], bool]],
    ) -> T:
        me = self._pending.get(key)
        try:
            value = await producer()
        finally:
            # delete() may have replaced or dropped the flight already
            if self._pending.get(key) is me:
                self._pending.pop(key, None)

        if cache_if is None or cache_if(value):
            self.set(key, value, ttl)
        return value
