"""
In-memory response cache for Strava API calls.

Entries expire individually. Reads evict expired entries lazily;
every Nth write sweeps the whole map so memory stays bounded.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    data: Any
    created_at: float
    expires_at: float


def get_cache_key(endpoint: str, params: Optional[dict] = None) -> str:
    """
    Build a cache key from endpoint and query params.

    Params are sorted by name, so insertion order never changes the key.
    """
    if not params:
        return endpoint
    query = "&".join(f"{key}={_format_value(value)}" for key, value in sorted(params.items()))
    return f"{endpoint}?{query}"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class ResponseCache:
    """
    Time-boxed key/value cache.

    Usage:
        cache = ResponseCache()
        cache.set("/athlete", athlete, ttl=600)
        athlete = cache.get("/athlete")
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        sweep_every: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.sweep_every = sweep_every
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._writes = 0

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            data=data,
            created_at=now,
            expires_at=now + (ttl if ttl is not None else self.default_ttl),
        )

        self._writes += 1
        if self.sweep_every and self._writes % self.sweep_every == 0:
            self.cleanup()

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None

        return entry

    def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        return entry.data if entry is not None else None

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> dict:
        """Get cache statistics."""
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if now > entry.expires_at)
        return {
            "total": len(self._entries),
            "valid": len(self._entries) - expired,
            "expired": expired,
        }

    def __len__(self) -> int:
        return len(self._entries)
