"""
Namespaced TTL cache for fetched datasets and geometry results

Entries are JSON documents {data, timestamp, ttl} (milliseconds) stored
under "<prefix>:<NAMESPACE>:<identifier>". The cache is write-through and
never authoritative: read and write failures degrade to a miss.
"""

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar
from loguru import logger

from .backends import CacheQuotaExceededError, MemoryBackend
from ..config import CacheConfig

T = TypeVar("T")


@dataclass
class CacheStats:
    entry_count: int
    approx_size_kb: float
    hits: int
    misses: int
    hit_rate: float  # Percent


class CacheStore:
    """
    TTL cache over a bounded key/value backend

    Hit/miss counters belong to the instance and reset only when a new
    store is created. Public operations are serialized by a lock so the
    concurrent dataset fetches see consistent counters and quota checks.
    """

    def __init__(
        self,
        backend=None,
        cache_config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = cache_config or CacheConfig()
        self.backend = backend if backend is not None else MemoryBackend(self.config.max_bytes)
        self.clock = clock
        self.hits = 0
        self.misses = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Keys and entries
    # ------------------------------------------------------------------

    def _key(self, namespace: str, identifier: str) -> str:
        return f"{self.config.key_prefix}:{namespace}:{identifier}"

    def _app_keys(self):
        prefix = f"{self.config.key_prefix}:"
        return [k for k in self.backend.keys() if k.startswith(prefix)]

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _is_valid(self, entry: dict) -> bool:
        return self._now_ms() - entry["timestamp"] < entry["ttl"]

    def _parse(self, raw: str) -> dict:
        entry = json.loads(raw)
        if not isinstance(entry, dict) or not {"data", "timestamp", "ttl"} <= entry.keys():
            raise ValueError("cache entry is missing data/timestamp/ttl")
        if not isinstance(entry["timestamp"], (int, float)) or not isinstance(entry["ttl"], (int, float)):
            raise ValueError("cache entry timestamp/ttl are not numbers")
        return entry

    def _discard(self, key: str) -> None:
        try:
            self.backend.remove_item(key)
        except OSError as e:
            logger.warning(f"Could not remove cache entry {key}: {e}")

    def default_ttl(self, namespace: str) -> int:
        """Default TTL in milliseconds for a namespace"""
        ttls = self.config.namespace_ttls
        return ttls.get(namespace, ttls[self.config.fallback_namespace])

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, namespace: str, identifier: str) -> Optional[Any]:
        """Return cached data, or None when absent, expired or corrupt"""
        key = self._key(namespace, identifier)
        with self._lock:
            return self._get(key, namespace, identifier)

    def _get(self, key: str, namespace: str, identifier: str) -> Optional[Any]:
        try:
            raw = self.backend.get_item(key)
        except OSError as e:
            logger.warning(f"Cache read failed for {namespace}:{identifier}: {e}")
            raw = None

        if raw is None:
            self.misses += 1
            return None

        try:
            entry = self._parse(raw)
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding corrupt cache entry {namespace}:{identifier}: {e}")
            self._discard(key)
            self.misses += 1
            return None

        if not self._is_valid(entry):
            self._discard(key)
            self.misses += 1
            return None

        self.hits += 1
        logger.debug(f"[Cache HIT] {namespace}:{identifier}")
        return entry["data"]

    def set(self, namespace: str, identifier: str, data: Any, ttl: Optional[int] = None) -> None:
        """
        Store data under namespace/identifier

        On a quota failure, expired entries are swept and the write is
        retried once; a second failure is logged and dropped. Storage
        errors and unserializable data are logged and dropped as well.
        """
        key = self._key(namespace, identifier)
        final_ttl = ttl or self.default_ttl(namespace)
        try:
            value = json.dumps({"data": data, "timestamp": self._now_ms(), "ttl": final_ttl})
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize {namespace}:{identifier} for the cache: {e}")
            return

        with self._lock:
            try:
                self._write(key, value)
                logger.debug(f"[Cache SET] {namespace}:{identifier} (TTL: {final_ttl}ms)")
            except CacheQuotaExceededError as e:
                logger.error(f"Failed to cache {namespace}:{identifier} even after cleanup: {e}")
            except OSError as e:
                logger.error(f"Failed to cache {namespace}:{identifier}: {e}")

    def _write(self, key: str, value: str) -> None:
        try:
            self.backend.set_item(key, value)
            return
        except CacheQuotaExceededError:
            logger.warning("Cache quota exceeded, clearing expired entries...")

        self.clear_expired()
        self.backend.set_item(key, value)

    def remove(self, namespace: str, identifier: str) -> None:
        with self._lock:
            self.backend.remove_item(self._key(namespace, identifier))
        logger.debug(f"[Cache REMOVE] {namespace}:{identifier}")

    def clear(self) -> int:
        """Remove every entry carrying the app prefix"""
        with self._lock:
            keys = self._app_keys()
            for key in keys:
                self.backend.remove_item(key)
        logger.info(f"[Cache CLEAR] Removed {len(keys)} entries")
        return len(keys)

    def clear_expired(self) -> int:
        """Remove expired and corrupt entries across all namespaces"""
        removed = 0
        with self._lock:
            for key in self._app_keys():
                raw = self.backend.get_item(key)
                if raw is None:
                    continue
                try:
                    expired = not self._is_valid(self._parse(raw))
                except (ValueError, TypeError):
                    expired = True
                if expired:
                    self.backend.remove_item(key)
                    removed += 1

        logger.info(f"[Cache CLEANUP] Removed {removed} expired entries")
        return removed

    def cached(
        self,
        namespace: str,
        identifier: str,
        compute: Callable[[], T],
        ttl: Optional[int] = None,
    ) -> T:
        """Return the cached value or compute, store and return it"""
        data = self.get(namespace, identifier)
        if data is not None:
            return data
        data = compute()
        self.set(namespace, identifier, data, ttl)
        return data

    def stats(self) -> CacheStats:
        with self._lock:
            keys = self._app_keys()
            total_size = 0
            for key in keys:
                value = self.backend.get_item(key)
                if value:
                    total_size += len(value)

        lookups = self.hits + self.misses
        hit_rate = round(self.hits / lookups * 100, 1) if self.hits > 0 else 0.0

        return CacheStats(
            entry_count=len(keys),
            approx_size_kb=round(total_size / 1024, 2),
            hits=self.hits,
            misses=self.misses,
            hit_rate=hit_rate,
        )
