import time
from dataclasses import dataclass
from typing import Any, Callable

from config import CACHE_DEFAULT_TTL


@dataclass
class CacheEntry:
    value: Any
    expires_at: float  # unix milliseconds


class ExpiringCache:
    """In-memory key/value store with per-entry TTL.

    Expired entries are removed lazily on `get` and actively by `cleanup`.
    `size()` counts raw entries, so it can include entries that have expired
    but were not yet touched or swept. There is no capacity bound.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def set(self, key: str, value: Any, ttl_seconds: float = CACHE_DEFAULT_TTL) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._now_ms() + ttl_seconds * 1000)

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._now_ms() > entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Any | None:
        entry = self._live_entry(key)
        return None if entry is None else entry.value

    def has(self, key: str) -> bool:
        """True for any live key, including one whose stored value is None."""
        return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def size(self) -> int:
        return len(self._entries)

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._now_ms()
        expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
