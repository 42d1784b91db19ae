"""
Versioned cache store for captured network responses.

Caches are named per deployment generation (``{prefix}-{generation}``);
activating a new generation deletes every cache whose name is not current.
Entries are replaced by key, never mutated, and there is no per-entry TTL.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: bytes
    content_type: Optional[str]
    cache_generation: str
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    stored_at: float = field(default_factory=time.time)


class NamedCache:
    """One named cache: URL -> CacheEntry, last write wins"""

    def __init__(self, name: str):
        self.name = name
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    async def match(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def put(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry
        self._entries.move_to_end(entry.key)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self) -> List[str]:
        return list(self._entries.keys())

    def size(self) -> int:
        return len(self._entries)


class CacheStorage:
    """All named caches visible to the agent and the page"""

    def __init__(self):
        self._caches: Dict[str, NamedCache] = {}
        self._lock = asyncio.Lock()

    async def open(self, name: str) -> NamedCache:
        async with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = NamedCache(name)
                self._caches[name] = cache
            return cache

    async def keys(self) -> List[str]:
        return list(self._caches.keys())

    async def delete(self, name: str) -> bool:
        async with self._lock:
            removed = self._caches.pop(name, None)
        if removed is not None:
            logger.info(f"Deleting old cache: {name} ({removed.size()} entries)")
        return removed is not None

    async def match(self, key: str) -> Optional[CacheEntry]:
        """Search every cache, oldest-opened first"""
        for cache in list(self._caches.values()):
            entry = await cache.match(key)
            if entry is not None:
                return entry
        return None

    def stats(self) -> Dict[str, int]:
        return {name: cache.size() for name, cache in self._caches.items()}
