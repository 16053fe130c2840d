"""
In-memory TTL cache for the Credentials Service.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from shared.logging import get_logger


V = TypeVar("V")

DEFAULT_STRIPES = 16


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value and the monotonic instant it stops being valid."""

    key: str
    value: V
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class _Stripe:
    """One lock-guarded slice of the key space."""

    __slots__ = ("lock", "entries")

    def __init__(self):
        self.lock = threading.Lock()
        self.entries: Dict[str, CacheEntry[Any]] = {}


class TTLCache(Generic[V]):
    """Thread-safe expiring key/value store.

    Keys are hashed onto a fixed set of stripes, each with its own lock, so
    readers and writers of different keys rarely contend. Entries are replaced
    wholesale on ``set``; a reader sees either the old entry or the new one.
    Expired entries behave as absent and are dropped when a ``get`` finds them.
    There is no background sweeper.
    """

    def __init__(self, stripes: int = DEFAULT_STRIPES, clock: Callable[[], float] = time.monotonic):
        if stripes < 1:
            raise ValueError("stripes must be at least 1")
        self._stripes: List[_Stripe] = [_Stripe() for _ in range(stripes)]
        self._clock = clock
        self.logger = get_logger("credentials.cache.ttl")

    def _stripe_for(self, key: str) -> _Stripe:
        return self._stripes[hash(key) % len(self._stripes)]

    def get(self, key: str) -> Optional[V]:
        """Return the live value for ``key``, or None if absent or expired."""
        stripe = self._stripe_for(key)
        with stripe.lock:
            entry = stripe.entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del stripe.entries[key]
                return None
            return entry.value

    def set(self, key: str, value: V, ttl: float) -> None:
        """Insert or overwrite ``key``; it expires ``ttl`` seconds from now."""
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        stripe = self._stripe_for(key)
        entry = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
        with stripe.lock:
            stripe.entries[key] = entry

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if a live entry was removed."""
        stripe = self._stripe_for(key)
        with stripe.lock:
            entry = stripe.entries.pop(key, None)
        return entry is not None and not entry.is_expired(self._clock())

    def clear(self) -> None:
        for stripe in self._stripes:
            with stripe.lock:
                stripe.entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        removed = 0
        for stripe in self._stripes:
            with stripe.lock:
                now = self._clock()
                expired = [key for key, entry in stripe.entries.items() if entry.is_expired(now)]
                for key in expired:
                    del stripe.entries[key]
                removed += len(expired)
        if removed:
            self.logger.debug("Purged expired cache entries", removed=removed)
        return removed

    def __len__(self) -> int:
        """Number of live (unexpired) entries."""
        count = 0
        for stripe in self._stripes:
            with stripe.lock:
                now = self._clock()
                count += sum(1 for entry in stripe.entries.values() if not entry.is_expired(now))
        return count

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
