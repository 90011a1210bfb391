"""
Time-to-live cache used for the article index, article records and theme
templates.

Cached values are advisory: a miss or an expired entry always falls
through to the source of truth.
"""
import time
from typing import Any, Callable, Dict, Hashable, Tuple

_MISSING = object()


class TTLCache:
    """In-process cache whose entries expire after a fixed number of seconds."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            ttl: Seconds an entry stays valid; 0 or less disables caching
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value for key, or default if absent or expired."""
        entry = self._entries.get(key, _MISSING)
        if entry is _MISSING:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return default
        return value

    def put(self, key: Hashable, value: Any) -> None:
        """Cache value under key for ttl seconds."""
        if self.ttl <= 0:
            return
        self._entries[key] = (self._clock() + self.ttl, value)

    def invalidate(self, key: Hashable) -> None:
        """Drop a single key."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every key."""
        self._entries.clear()
