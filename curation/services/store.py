"""
Evaluation History Store - Curation Critique Service
curation/services/store.py

Key-value persistence for scored evaluations. RedisStore is used when
REDIS_URL is configured and reachable; otherwise the service falls back to
InMemoryStore so the application keeps working without Redis.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import redis

from curation.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "evaluation"
IN_MEMORY_MAX_ENTRIES = 5000


def evaluation_key(curator_id: str, item_id: str) -> str:
    return f"{KEY_PREFIX}:{curator_id}:{item_id}"


class KeyValueStore(ABC):
    backend: str = "abstract"

    @abstractmethod
    def put(self, key: str, value: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list(self, prefix: str) -> List[Dict[str, Any]]:
        ...

    def ping(self) -> bool:
        return True


class RedisStore(KeyValueStore):
    """JSON values in Redis with a TTL per entry."""

    backend = "redis"

    def __init__(self, url: str, ttl_seconds: int = 7 * 86400):
        self.ttl_seconds = ttl_seconds
        self.client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def put(self, key: str, value: Dict[str, Any]) -> None:
        self.client.setex(key, self.ttl_seconds, json.dumps(value, default=str))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        data = self.client.get(key)
        if data:
            return json.loads(data)
        return None

    def list(self, prefix: str) -> List[Dict[str, Any]]:
        values = []
        for key in self.client.scan_iter(match=f"{prefix}*"):
            data = self.client.get(key)
            if data:
                values.append(json.loads(data))
        return values

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except (redis.RedisError, ConnectionError):
            return False


class InMemoryStore(KeyValueStore):
    """Process-local fallback. Oldest entries are evicted past max_entries."""

    backend = "memory"

    def __init__(self, max_entries: int = IN_MEMORY_MAX_ENTRIES):
        self.max_entries = max_entries
        self._data: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = json.dumps(value, default=str)
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        data = self._data.get(key)
        return json.loads(data) if data else None

    def list(self, prefix: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [json.loads(v) for k, v in self._data.items() if k.startswith(prefix)]


# Singleton instance
_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    """
    Get or create the history store.

    Note:
        Falls back to InMemoryStore when REDIS_URL is unset or Redis does not
        answer a ping, so history keeps working without Redis.
    """
    global _store
    if _store is None:
        if settings.REDIS_URL:
            try:
                candidate = RedisStore(settings.REDIS_URL, ttl_seconds=settings.HISTORY_TTL_SECONDS)
                candidate.client.ping()  # Test connection
                _store = candidate
                logger.info("Evaluation history stored in Redis")
            except (redis.RedisError, ConnectionError) as e:
                logger.warning(f"Redis unavailable ({e}); using in-memory history store")
        if _store is None:
            _store = InMemoryStore()
    return _store


def reset_store() -> None:
    """Reset the store singleton (tests, reconnects)."""
    global _store
    _store = None
