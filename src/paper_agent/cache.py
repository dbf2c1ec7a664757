from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from paper_agent.models import PaperStructure

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_CAPACITY = 10


@dataclass
class CacheEntry:
    structure: PaperStructure
    timestamp: float


class StructureCache:
    """Parsed structures keyed by document key.

    Entries expire ``ttl_seconds`` after they were written. When a new key is
    inserted into a full cache, the entry with the oldest write time goes.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.capacity = capacity
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> PaperStructure | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            logger.debug("Cache entry expired: %s", key)
            del self._entries[key]
            return None
        return entry.structure

    def put(self, key: str, structure: PaperStructure) -> None:
        if key not in self._entries and len(self._entries) >= self.capacity:
            oldest = min(self._entries, key=lambda k: self._entries[k].timestamp)
            logger.debug("Evicting cached structure: %s", oldest)
            del self._entries[oldest]
        self._entries[key] = CacheEntry(structure=structure, timestamp=self._clock())

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
