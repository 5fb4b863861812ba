"""
Cache layer for datasets and geometry results

- Backends: bounded key/value storage (memory, directory of JSON files)
- Store: namespaces, TTL expiry, quota sweep, hit/miss statistics
"""

from .backends import CacheQuotaExceededError, MemoryBackend, DirectoryBackend
from .store import CacheStore, CacheStats

__all__ = [
    "CacheQuotaExceededError",
    "MemoryBackend",
    "DirectoryBackend",
    "CacheStore",
    "CacheStats",
]
