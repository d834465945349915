"""In-memory TTL cache for parse results."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    timestamp: float  # epoch seconds


class ParseCache:
    """
    TTL cache keyed by normalized URL.

    Entries are evicted lazily on read; there is no background sweep.
    When full, the oldest entry is dropped to make room.
    """

    def __init__(
        self,
        ttl_seconds: float = 30 * 60,
        max_size: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp > self.ttl_seconds:
            self._entries.pop(key, None)
            logger.debug(f"Cache entry expired: {key}")
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            oldest = min(self._entries, key=lambda k: self._entries[k].timestamp)
            self._entries.pop(oldest, None)
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
