"""Time-boxed response cache for upstream market data fetches.

Entries are keyed by request identity (one key per distinct query shape) and
reused while ``now - fetched_at < ttl``. The TTL is chosen per call so that
different data classes (asset lists, history series) can have different
freshness requirements.

Concurrent misses for the same key are coalesced: the first caller performs
the fetch, later callers block until it settles and share its payload (or its
exception). Failed fetches are never stored, so the next call retries.

Entries are not evicted in the background; staleness is decided at read time.
The key space is expected to be small and finite. Pass ``max_entries`` to get
an LRU bound when it is not.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar

from coinpulse.utils.exceptions import CacheError, ConfigurationError
from coinpulse.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 15.0


@dataclass(frozen=True)
class CacheEntry:
    """A stored payload and the monotonic time it was fetched."""

    key: str
    payload: Any
    fetched_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at < ttl


class _Flight:
    """A fetch in progress that other callers can wait on."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.payload: Any = None
        self.error: Optional[BaseException] = None


class ResponseCache:
    """Memoizes fetch results per key for a caller-chosen TTL.

    Thread-safe. Callers cannot tell a hit from a fresh fetch except by
    latency: both return the same payload object that was fetched.

    Example:
        >>> cache = ResponseCache(default_ttl=15)
        >>> quotes = cache.get("assets:limit=20", lambda: provider.get_assets(20))
        >>> # Within 15 seconds this returns the same list without a request
        >>> quotes = cache.get("assets:limit=20", lambda: provider.get_assets(20))
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty cache.

        Args:
            default_ttl: TTL in seconds used when ``get`` is called without one
            max_entries: Optional LRU bound on stored entries (None = unbounded)
            clock: Monotonic time source in seconds (injectable for tests)
        """
        if default_ttl < 0:
            raise ConfigurationError(f"default_ttl must be >= 0, got {default_ttl}")
        if max_entries is not None and max_entries < 1:
            raise ConfigurationError(f"max_entries must be >= 1, got {max_entries}")

        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[str, _Flight] = {}
        self._lock = threading.Lock()
        self._disposed = False
        self._hits = 0
        self._misses = 0
        self._coalesced = 0

    def get(
        self,
        key: str,
        fetch_fn: Callable[[], T],
        ttl: Optional[float] = None,
    ) -> T:
        """Return the cached payload for ``key`` or fetch and store it.

        Args:
            key: Request identity
            fetch_fn: Zero-argument callable that performs the upstream fetch
            ttl: Freshness window in seconds (default: ``default_ttl``)

        Returns:
            The cached or freshly fetched payload

        Raises:
            CacheError: If the cache has been disposed
            Exception: Whatever ``fetch_fn`` raised; nothing is cached
        """
        ttl = self.default_ttl if ttl is None else ttl

        with self._lock:
            if self._disposed:
                raise CacheError("ResponseCache has been disposed")

            entry = self._entries.get(key)
            if entry is not None and entry.is_fresh(self._clock(), ttl):
                self._hits += 1
                self._entries.move_to_end(key)
                logger.debug("Cache hit for '%s'", key)
                return entry.payload

            flight = self._in_flight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._in_flight[key] = flight
                self._misses += 1
            else:
                self._coalesced += 1

        if not leader:
            logger.debug("Joining in-flight fetch for '%s'", key)
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.payload

        logger.debug("Cache miss for '%s', fetching", key)
        try:
            payload = fetch_fn()
        except BaseException as e:
            flight.error = e
            logger.warning("Fetch for '%s' failed, nothing cached: %s", key, e)
            raise
        else:
            flight.payload = payload
            with self._lock:
                if not self._disposed:
                    self._store(CacheEntry(key, payload, self._clock()))
            return payload
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
            flight.done.set()

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry
        self._entries.move_to_end(entry.key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted '%s' (max_entries=%d)", evicted, self.max_entries)

    def invalidate(self, key: str) -> bool:
        """Drop the entry for ``key``. Returns True if one was stored."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all entries and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._coalesced = 0
        logger.debug("Cache cleared")

    def dispose(self) -> None:
        """Clear the cache and reject any further ``get`` calls."""
        self.clear()
        with self._lock:
            self._disposed = True

    @property
    def stats(self) -> Dict[str, int]:
        """Hit/miss counters and current entry count."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "coalesced": self._coalesced,
                "entries": len(self._entries),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
