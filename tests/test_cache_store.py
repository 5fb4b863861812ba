"""
Tests for the namespaced TTL cache store and its backends.
"""

import errno
import json
import os
import shutil
import threading
from unittest.mock import patch

import pytest

from parkvalue.cache import CacheQuotaExceededError, CacheStore, DirectoryBackend, MemoryBackend
from parkvalue.config import DAY_MS, CacheConfig


def test_round_trip(cache):
    payload = {"inside_percentage": "42.0", "ids": [1, 2, 3]}
    cache.set("GEOMETRIC_CALC", "bufcov-23", payload)
    assert cache.get("GEOMETRIC_CALC", "bufcov-23") == payload


def test_key_format(cache):
    cache.set("PARKS", "all", [1])
    assert list(cache.backend.keys()) == ["chicago-parks:PARKS:all"]
    entry = json.loads(cache.backend.get_item("chicago-parks:PARKS:all"))
    assert set(entry) == {"data", "timestamp", "ttl"}
    assert entry["ttl"] == 7 * DAY_MS


def test_expires_after_ttl(cache, clock):
    cache.set("GEOMETRIC_CALC", "x", 1)
    clock.advance(DAY_MS / 1000 - 1)
    assert cache.get("GEOMETRIC_CALC", "x") == 1

    clock.advance(1)
    assert cache.get("GEOMETRIC_CALC", "x") is None
    # Expired entries are evicted on read
    assert list(cache.backend.keys()) == []


def test_ttl_override(cache, clock):
    cache.set("PARKS", "all", [], ttl=1000)
    clock.advance(2)
    assert cache.get("PARKS", "all") is None


def test_default_ttls_by_namespace(cache):
    assert cache.default_ttl("COMMUNITY_AREAS") == 7 * DAY_MS
    assert cache.default_ttl("PARKS") == 7 * DAY_MS
    assert cache.default_ttl("GEOMETRIC_CALC") == DAY_MS
    assert cache.default_ttl("SOMETHING_ELSE") == DAY_MS


def test_falsy_payloads_are_hits(cache):
    cache.set("PARKS", "all", [])
    assert cache.get("PARKS", "all") == []
    assert cache.hits == 1


def test_hit_and_miss_counters(cache):
    assert cache.get("PARKS", "all") is None
    assert (cache.hits, cache.misses) == (0, 1)

    cache.set("PARKS", "all", [1])
    cache.get("PARKS", "all")
    cache.get("PARKS", "all")
    assert (cache.hits, cache.misses) == (2, 1)


def test_corrupt_entry_is_miss_and_removed(cache):
    cache.backend.set_item("chicago-parks:PARKS:all", "{not json")
    assert cache.get("PARKS", "all") is None
    assert cache.misses == 1
    assert cache.backend.get_item("chicago-parks:PARKS:all") is None


def test_entry_missing_fields_is_corrupt(cache):
    cache.backend.set_item("chicago-parks:PARKS:all", json.dumps({"data": 1}))
    assert cache.get("PARKS", "all") is None
    assert cache.backend.get_item("chicago-parks:PARKS:all") is None


def test_remove(cache):
    cache.set("PARKS", "all", [1])
    cache.remove("PARKS", "all")
    assert cache.get("PARKS", "all") is None


def test_clear_only_touches_app_keys(cache):
    cache.backend.set_item("other-app:key", "keep")
    cache.set("PARKS", "all", [1])
    cache.set("COMMUNITY_AREAS", "all", [2])

    assert cache.clear() == 2
    assert list(cache.backend.keys()) == ["other-app:key"]


def test_clear_expired(cache, clock):
    cache.set("GEOMETRIC_CALC", "old", 1)
    clock.advance(DAY_MS / 1000 + 1)
    cache.set("PARKS", "fresh", 2)
    cache.backend.set_item("chicago-parks:PARKS:broken", "???")

    assert cache.clear_expired() == 2
    assert cache.get("PARKS", "fresh") == 2


def test_quota_sweeps_expired_then_retries(clock):
    backend = MemoryBackend(max_bytes=300)
    cache = CacheStore(backend, CacheConfig(), clock=clock)

    cache.set("GEOMETRIC_CALC", "old", "x" * 150)
    clock.advance(DAY_MS / 1000 + 1)
    cache.set("GEOMETRIC_CALC", "new", "y" * 150)

    assert cache.get("GEOMETRIC_CALC", "new") == "y" * 150
    assert backend.get_item("chicago-parks:GEOMETRIC_CALC:old") is None


def test_quota_failure_is_swallowed(clock):
    cache = CacheStore(MemoryBackend(max_bytes=50), CacheConfig(), clock=clock)
    cache.set("GEOMETRIC_CALC", "big", "z" * 500)
    assert cache.get("GEOMETRIC_CALC", "big") is None


def test_cached_computes_once(cache):
    calls = []

    def compute():
        calls.append(1)
        return {"value": 7}

    assert cache.cached("GEOMETRIC_CALC", "k", compute) == {"value": 7}
    assert cache.cached("GEOMETRIC_CALC", "k", compute) == {"value": 7}
    assert len(calls) == 1


def test_stats(cache):
    cache.set("PARKS", "all", list(range(100)))
    cache.get("PARKS", "all")
    cache.get("PARKS", "missing")

    stats = cache.stats()
    assert stats.entry_count == 1
    assert stats.approx_size_kb > 0
    assert (stats.hits, stats.misses) == (1, 1)
    assert stats.hit_rate == 50.0


def test_stats_without_hits(cache):
    cache.get("PARKS", "missing")
    assert cache.stats().hit_rate == 0.0


def test_memory_backend_quota():
    backend = MemoryBackend(max_bytes=10)
    backend.set_item("a", "12345")
    with pytest.raises(CacheQuotaExceededError):
        backend.set_item("b", "1234567")
    # Overwriting an item only counts the difference
    backend.set_item("a", "1234567890")


def test_directory_backend_round_trip(tmp_path, clock):
    backend = DirectoryBackend(str(tmp_path / "cache"))
    cache = CacheStore(backend, CacheConfig(), clock=clock)
    cache.set("COMMUNITY_AREAS", "all", [{"area_numbe": "23"}])

    # A second store over the same directory sees the entry
    reopened = CacheStore(DirectoryBackend(str(tmp_path / "cache")), CacheConfig(), clock=clock)
    assert reopened.get("COMMUNITY_AREAS", "all") == [{"area_numbe": "23"}]
    assert list(reopened.backend.keys()) == ["chicago-parks:COMMUNITY_AREAS:all"]


def test_directory_backend_unreadable_file_is_evicted(tmp_path, clock):
    backend = DirectoryBackend(str(tmp_path))
    cache = CacheStore(backend, CacheConfig(), clock=clock)
    cache.set("PARKS", "all", [1])

    path = backend._path("chicago-parks:PARKS:all")
    with open(path, "w", encoding="utf-8") as f:
        f.write("garbage")

    assert cache.get("PARKS", "all") is None
    assert backend.get_item("chicago-parks:PARKS:all") is None


def test_directory_backend_quota(tmp_path):
    backend = DirectoryBackend(str(tmp_path), max_bytes=100)
    with pytest.raises(CacheQuotaExceededError):
        backend.set_item("k", "v" * 200)


def test_directory_backend_disk_full_is_quota_error(tmp_path):
    backend = DirectoryBackend(str(tmp_path))
    disk_full = OSError(errno.ENOSPC, "No space left on device")
    with patch("parkvalue.cache.backends.os.replace", side_effect=disk_full):
        with pytest.raises(CacheQuotaExceededError):
            backend.set_item("k", "v")
    # No partial files left behind
    assert os.listdir(tmp_path) == []


def test_disk_full_write_is_dropped(tmp_path, clock):
    cache = CacheStore(DirectoryBackend(str(tmp_path)), CacheConfig(), clock=clock)
    disk_full = OSError(errno.ENOSPC, "No space left on device")
    with patch("parkvalue.cache.backends.os.replace", side_effect=disk_full) as replace:
        cache.set("PARKS", "all", [1])
    # Initial write plus one retry after the sweep
    assert replace.call_count == 2
    assert cache.get("PARKS", "all") is None


def test_missing_cache_directory_degrades_to_no_cache(tmp_path, clock):
    cache_dir = tmp_path / "cache"
    cache = CacheStore(DirectoryBackend(str(cache_dir)), CacheConfig(), clock=clock)
    shutil.rmtree(cache_dir)

    cache.set("GEOMETRIC_CALC", "bufcov-1", {"inside_percentage": "10.0"})
    assert cache.get("GEOMETRIC_CALC", "bufcov-1") is None


def test_unserializable_data_is_dropped(cache):
    cache.set("GEOMETRIC_CALC", "bad", {"geom": object()})
    assert cache.get("GEOMETRIC_CALC", "bad") is None
    assert list(cache.backend.keys()) == []


def test_counters_are_consistent_across_threads(cache):
    cache.set("PARKS", "all", [1])

    def lookups():
        for i in range(200):
            cache.get("PARKS", "all" if i % 2 else "missing")

    threads = [threading.Thread(target=lookups) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.hits == 800
    assert cache.misses == 800
