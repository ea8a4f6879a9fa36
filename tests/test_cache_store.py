"""
Cache and History Store Tests
tests/test_cache_store.py
"""
import json
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
import redis

from curation.services import store as store_module
from curation.services.cache import BoundedCache, evaluation_cache_key
from curation.services.store import InMemoryStore, RedisStore, evaluation_key, get_store, reset_store


class TestBoundedCache:

    def test_get_and_set(self):
        cache = BoundedCache(2)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert cache.stats() == {"size": 1, "max_size": 2, "hits": 1, "misses": 1}

    def test_least_recently_used_evicted(self):
        cache = BoundedCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_zero_size_disables(self):
        cache = BoundedCache(0)
        cache.set("a", 1)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            BoundedCache(-1)

    def test_clear_resets_counters(self):
        cache = BoundedCache(4)
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        assert cache.stats() == {"size": 0, "max_size": 4, "hits": 0, "misses": 0}

    def test_concurrent_readers_and_writers(self):
        cache = BoundedCache(8)

        def write(n):
            for i in range(200):
                cache.set((n, i), i)
                cache.get((n, i - 1))

        def read(_):
            sizes = []
            for _ in range(200):
                sizes.append(cache.stats()["size"])
                sizes.append(len(cache))
                assert isinstance((0, 5) in cache, bool)
            return sizes

        with ThreadPoolExecutor(max_workers=8) as pool:
            writers = [pool.submit(write, n) for n in range(4)]
            readers = [pool.submit(read, n) for n in range(4)]
            for future in writers:
                future.result()
            observed = [size for future in readers for size in future.result()]

        assert all(0 <= size <= 8 for size in observed)
        stats = cache.stats()
        assert stats["size"] == len(cache) == 8
        assert stats["hits"] + stats["misses"] == 4 * 200

    def test_key_shape(self):
        assert evaluation_cache_key("nina", "abc") == ("nina", "abc")


class TestInMemoryStore:

    def test_put_get_list(self):
        store = InMemoryStore()
        store.put(evaluation_key("nina", "img_1"), {"id": "img_1"})
        store.put(evaluation_key("warhol", "img_2"), {"id": "img_2"})
        assert store.get("evaluation:nina:img_1") == {"id": "img_1"}
        assert store.get("evaluation:nina:nope") is None
        assert store.list("evaluation:nina:") == [{"id": "img_1"}]
        assert len(store.list("evaluation:")) == 2
        assert store.ping()
        assert store.backend == "memory"

    def test_oldest_entries_evicted(self):
        store = InMemoryStore(max_entries=2)
        for n in range(3):
            store.put(f"evaluation:nina:{n}", {"n": n})
        assert store.get("evaluation:nina:0") is None
        assert [r["n"] for r in store.list("evaluation:")] == [1, 2]


class TestRedisStore:

    @patch("curation.services.store.redis.from_url")
    def test_put_uses_ttl(self, mock_from_url):
        client = MagicMock()
        mock_from_url.return_value = client
        store = RedisStore("redis://localhost:6379/0", ttl_seconds=120)

        store.put("evaluation:nina:img_1", {"id": "img_1"})

        client.setex.assert_called_once_with("evaluation:nina:img_1", 120, json.dumps({"id": "img_1"}))
        assert mock_from_url.call_args.kwargs["decode_responses"] is True

    @patch("curation.services.store.redis.from_url")
    def test_get_and_list(self, mock_from_url):
        client = MagicMock()
        client.get.side_effect = lambda key: json.dumps({"key": key})
        client.scan_iter.return_value = iter(["evaluation:nina:a", "evaluation:nina:b"])
        mock_from_url.return_value = client
        store = RedisStore("redis://localhost:6379/0")

        assert store.get("evaluation:nina:a") == {"key": "evaluation:nina:a"}
        assert [r["key"] for r in store.list("evaluation:nina:")] == ["evaluation:nina:a", "evaluation:nina:b"]
        client.scan_iter.assert_called_once_with(match="evaluation:nina:*")

    @patch("curation.services.store.redis.from_url")
    def test_ping_failure_reported(self, mock_from_url):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("down")
        mock_from_url.return_value = client
        assert RedisStore("redis://localhost:6379/0").ping() is False


class TestGetStore:

    def setup_method(self):
        reset_store()

    def teardown_method(self):
        reset_store()

    def test_no_url_uses_memory(self):
        with patch.object(store_module.settings, "REDIS_URL", None):
            assert isinstance(get_store(), InMemoryStore)

    @patch("curation.services.store.redis.from_url")
    def test_unreachable_redis_falls_back(self, mock_from_url):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        mock_from_url.return_value = client
        with patch.object(store_module.settings, "REDIS_URL", "redis://localhost:6379/0"):
            assert isinstance(get_store(), InMemoryStore)

    @patch("curation.services.store.redis.from_url")
    def test_reachable_redis_used(self, mock_from_url):
        mock_from_url.return_value = MagicMock()
        with patch.object(store_module.settings, "REDIS_URL", "redis://localhost:6379/0"):
            store = get_store()
        assert isinstance(store, RedisStore)
        assert get_store() is store
