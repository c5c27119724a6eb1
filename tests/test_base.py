"""Tests for the abstract cache interface."""

import pytest

from filecache.base import SimpleCache
from filecache.store import CacheStore


class DictCache(SimpleCache):
    """Minimal in-memory implementation used to exercise the default bulk methods."""

    def __init__(self):
        self.data = {}

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value, ttl=None):
        if key == "reject":
            return False
        self.data[key] = value
        return True

    def delete(self, key):
        self.data.pop(key, None)
        return True

    def clear(self):
        self.data.clear()
        return True

    def has(self, key):
        return key in self.data


class TestSimpleCache:
    """Test the interface contract and its default bulk methods."""

    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            SimpleCache()

    def test_store_implements_interface(self, store):
        assert isinstance(store, SimpleCache)

    def test_default_get_multiple(self):
        cache = DictCache()
        cache.set("a", 1)
        assert cache.get_multiple(["a", "b"], 0) == {"a": 1, "b": 0}

    def test_default_set_multiple_aggregates_failures(self):
        cache = DictCache()

        assert cache.set_multiple({"a": 1, "reject": 2, "c": 3}) is False
        assert cache.data == {"a": 1, "c": 3}

    def test_default_set_multiple_accepts_pairs(self):
        cache = DictCache()
        assert cache.set_multiple([("a", 1)]) is True

    def test_default_delete_multiple(self):
        cache = DictCache()
        cache.set_multiple({"a": 1, "b": 2})

        assert cache.delete_multiple(["a", "missing"]) is True
        assert cache.data == {"b": 2}


def test_host_code_against_interface(temp_cache_dir):
    """Test that host code written against SimpleCache works with CacheStore."""

    def remember(cache: SimpleCache, key, compute):
        value = cache.get(key)
        if value is None:
            value = compute()
            cache.set(key, value, 60)
        return value

    cache = CacheStore(temp_cache_dir)
    calls = []

    assert remember(cache, "answer", lambda: calls.append(1) or 42) == 42
    assert remember(cache, "answer", lambda: calls.append(1) or 42) == 42
    assert len(calls) == 1
