"""
Cache storage backends

Key/value string stores with a bounded capacity, in the shape of
browser localStorage: get_item / set_item / remove_item / keys
"""

import os
import json
import errno
import hashlib
from typing import Dict, Iterator, Optional
from loguru import logger


class CacheQuotaExceededError(Exception):
    """Raised when a write would exceed the backend capacity"""


# Disk-full errors are reported as quota errors so the store sweeps and retries
_DISK_FULL = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class MemoryBackend:
    """Process-local store bounded by total stored characters"""

    def __init__(self, max_bytes: int = 5 * 1024 * 1024):
        self.max_bytes = max_bytes
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        current = self.size_bytes() - len(self._items.get(key, ""))
        if current + len(value) > self.max_bytes:
            raise CacheQuotaExceededError(
                f"Writing {len(value)} bytes exceeds quota of {self.max_bytes} bytes"
            )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))

    def size_bytes(self) -> int:
        return sum(len(v) for v in self._items.values())


class DirectoryBackend:
    """
    Store each entry as a JSON file in a directory

    File names are a hash of the key; the key itself is kept inside the
    file so keys() can enumerate the store.
    """

    def __init__(self, cache_dir: str, max_bytes: int = 5 * 1024 * 1024):
        self.cache_dir = cache_dir
        self.max_bytes = max_bytes
        os.makedirs(cache_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        key_hash = hashlib.md5(key.encode()).hexdigest()
        return os.path.join(self.cache_dir, f"cache_{key_hash}.json")

    def _read(self, path: str) -> Optional[Dict[str, str]]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable cache file {path}: {e}")
            return None

    def _files(self) -> Iterator[str]:
        for name in os.listdir(self.cache_dir):
            if name.startswith("cache_") and name.endswith(".json"):
                yield os.path.join(self.cache_dir, name)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        record = self._read(path)
        if record is None:
            # Let the caller see it as corrupt so it gets evicted
            return ""
        return record.get("value")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        payload = json.dumps({"key": key, "value": value}, ensure_ascii=False)

        existing = os.path.getsize(path) if os.path.exists(path) else 0
        if self.size_bytes() - existing + len(payload.encode("utf-8")) > self.max_bytes:
            raise CacheQuotaExceededError(
                f"Writing {len(payload)} bytes to {self.cache_dir} exceeds quota of {self.max_bytes} bytes"
            )

        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            if e.errno in _DISK_FULL:
                raise CacheQuotaExceededError(f"No space left in {self.cache_dir}: {e}") from e
            raise

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def keys(self) -> Iterator[str]:
        found = []
        for path in self._files():
            record = self._read(path)
            if record is None or "key" not in record:
                # Orphaned file; nothing can address it
                os.remove(path)
                continue
            found.append(record["key"])
        return iter(found)

    def size_bytes(self) -> int:
        return sum(os.path.getsize(p) for p in self._files())
