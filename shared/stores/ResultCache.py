"""In-memory query result cache, namespaced per actor."""

import time
from collections import OrderedDict
from threading import Lock
from typing import Any


class ResultCache:
    """
    LRU cache with TTL holding the documents of recent queries.

    Entries live in one namespace per actor so a result list computed with one
    user's access contexts is never served to another user.

    Usage:
        cache = ResultCache(ttl=300)
        docs = cache.get(userid, querykey)
        if docs is None:
            docs = await engine.execute_query(...)
            cache.set(userid, querykey, docs)
    """

    def __init__(self, ttl: int = 300, maxsize: int = 1000) -> None:
        self.ttl = ttl
        self.maxsize = maxsize
        self._cache: OrderedDict[tuple[Any, str], tuple[Any, float]] = OrderedDict()  # (value, expires_at)
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, namespace: Any, key: str) -> Any | None:
        with self._lock:
            entry = self._cache.get((namespace, key))
            if entry is None:
                self._misses += 1
                return None

            value, expires_at = entry
            if time.monotonic() > expires_at:
                del self._cache[(namespace, key)]
                self._misses += 1
                return None

            self._cache.move_to_end((namespace, key))
            self._hits += 1
            return value

    def set(self, namespace: Any, key: str, value: Any) -> None:
        with self._lock:
            self._cache.pop((namespace, key), None)
            while len(self._cache) >= self.maxsize > 0:
                self._cache.popitem(last=False)
            self._cache[(namespace, key)] = (value, time.monotonic() + self.ttl)

    def purge(self, namespace: Any = None) -> None:
        """Drops every entry, or only the entries of one namespace."""
        with self._lock:
            if namespace is None:
                self._cache.clear()
                return
            for cache_key in [k for k in self._cache if k[0] == namespace]:
                del self._cache[cache_key]

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"size": len(self._cache), "hits": self._hits, "misses": self._misses}
