"""In-memory TTL cache; expiry is checked on read."""

from __future__ import annotations

import logging
from typing import Any, Dict, Generic, Hashable, List, Optional, TypeVar

from fitlink.core.clock import SYSTEM_CLOCK, Clock
from fitlink.core.models import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultCache(Generic[T]):
    def __init__(self, clock: Clock = SYSTEM_CLOCK) -> None:
        self.clock = clock
        self._entries: Dict[Hashable, CacheEntry[T]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self.clock.now()):
            del self._entries[key]
            logger.debug("Cache entry for %s expired", key)
            return None
        return entry.value

    def set(self, key: Hashable, value: T, ttl: float) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self.clock.now() + ttl)

    def evict_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self.clock.now()
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cleared %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        self.evict_expired()
        entries: List[str] = [str(key) for key in self._entries]
        return {"size": len(entries), "entries": entries}
