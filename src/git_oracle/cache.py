"""Time-to-live caching for expensive git queries."""

import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .constants import APP_NAME, DEFAULT_CACHE_TTL

logger = logging.getLogger(APP_NAME)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was stored.

    Attributes:
        data (T): The cached value.
        timestamp (float): Clock reading when the value was fetched.
    """

    data: T
    timestamp: float

    def is_valid(self, now: float, ttl: float) -> bool:
        return now - self.timestamp < ttl


class TTLCache(Generic[T]):
    """Memoizes fetch results per key for a fixed time-to-live.

    Entries are replaced wholesale on refetch and never mutated. Invalidation
    is explicit; a failed fetch leaves the cache untouched.

    Attributes:
        ttl (float): Default time-to-live in seconds.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        self.ttl = ttl
        self._clock = clock
        self._name = name
        self._entries: dict[Hashable, CacheEntry[T]] = {}

    def get_or_fetch(
        self, key: Hashable, fetch: Callable[[], T], ttl: float | None = None
    ) -> T:
        """Returns the cached value for `key`, calling `fetch` if it is stale.

        Args:
            key (Hashable): The cache key.
            fetch (Callable[[], T]): Produces a fresh value on a miss.
            ttl (float | None, optional): Overrides the default TTL for this
                                          lookup. Defaults to None.

        Returns:
            T: The cached or freshly fetched value.
        """
        limit = self.ttl if ttl is None else ttl
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(self._clock(), limit):
            return entry.data

        logger.debug(f"{self._name}: miss for {key!r}")
        data = fetch()
        self._entries[key] = CacheEntry(data, self._clock())
        return data

    def peek(self, key: Hashable) -> CacheEntry[T] | None:
        """Returns the stored entry for `key` regardless of age, if any."""
        return self._entries.get(key)

    def invalidate(self, key: Hashable | None = None) -> None:
        """Discards one entry, or every entry when `key` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
