"""
Evaluation Cache - Curation Critique Service
curation/services/cache.py

Bounded in-process LRU cache of evaluator results, keyed by
(curator_id, sha256 of the image payload). Injected into the curation
service so tests can swap or reset it.
"""

import threading
from collections import OrderedDict
from typing import Any, Dict, Hashable, Optional


class BoundedCache:
    """Least-recently-used cache holding at most max_size entries. max_size=0 disables it."""

    def __init__(self, max_size: int = 256):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self.max_size = max_size
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key not in self._entries:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]

    def set(self, key: Hashable, value: Any) -> None:
        if self.max_size == 0:
            return
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
            }


def evaluation_cache_key(curator_id: str, image_sha256: str) -> tuple:
    return (curator_id, image_sha256)
