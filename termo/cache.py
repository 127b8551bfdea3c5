# Small time-based cache owned by the music providers.

from __future__ import annotations
from typing import Any, Callable, Dict, Hashable, Optional, Tuple
import time

# Sentinel value to distinguish "no entry" from a cached None
_MISS = object()


class TTLCache:
    """
    key -> (value, stored_at) with a fixed time-to-live.

    Expired entries are evicted lazily on lookup. The clock is injectable so
    tests can move time forward without sleeping.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        entry = self._entries.get(key, _MISS)
        if entry is _MISS:
            return default
        value, stored_at = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (value, self.clock())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISS) is not _MISS

    def __len__(self) -> int:
        return len(self._entries)
