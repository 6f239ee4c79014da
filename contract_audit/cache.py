"""
Two-tier extraction cache for contract_audit.

Entries live in a process-memory dict (short TTL) and on disk under
``<directory>/<category>/<key>.json``. Disk entries are written to a
temporary file in the same directory and atomically renamed into place, so
a concurrent reader sees either the previous entry or the complete new one.
Any entry that fails to load is deleted and treated as a miss.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any, Callable

logger = logging.getLogger(__name__)

CATEGORIES = ("raw", "tree", "analysis")


class CacheStore:
    """
    Content-addressed cache keyed by (path, mtime, size).

    ``get`` returns ``None`` on a miss, so ``None`` itself is never stored.
    """

    def __init__(
        self,
        directory: Path,
        ttl: float = 3600,
        max_age: float = 86400,
        memory_ttl: float = 300,
        ttl_multipliers: dict[str, float] | None = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the cache.

        Args:
            directory: Cache root; category subdirectories are created lazily.
            ttl: Base time-to-live in seconds.
            max_age: Entries older than this are discarded regardless of TTL.
            memory_ttl: Upper bound on how long an entry stays in memory.
            ttl_multipliers: Per-category multiplier applied to ``ttl``.
            enabled: When False every lookup misses and nothing is written.
            clock: Time source, injectable for tests.
        """
        self.directory = Path(directory)
        self.ttl = ttl
        self.max_age = max_age
        self.memory_ttl = memory_ttl
        self.ttl_multipliers = {"raw": 1, "tree": 1, "analysis": 2}
        if ttl_multipliers:
            self.ttl_multipliers.update(ttl_multipliers)
        self.enabled = enabled
        self.clock = clock

        self._memory: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "deletes": 0}

    @classmethod
    def from_config(cls, config: dict[str, Any], base_dir: Path | None = None) -> "CacheStore":
        """Build a cache from the ``cache`` config section."""
        cache_config = config.get("cache", {})
        directory = Path(cache_config.get("directory", ".audit-cache"))
        if base_dir is not None and not directory.is_absolute():
            directory = base_dir / directory
        return cls(
            directory=directory,
            ttl=cache_config.get("ttl", 3600),
            max_age=cache_config.get("max_age", 86400),
            memory_ttl=cache_config.get("memory_ttl", 300),
            ttl_multipliers=cache_config.get("ttl_multipliers"),
            enabled=cache_config.get("enabled", True),
        )

    # Keys

    @staticmethod
    def generate_key(*parts: Any) -> str:
        """Hash arbitrary parts into a cache key."""
        content = "|".join(str(p) for p in parts)
        return hashlib.md5(content.encode("utf-8")).hexdigest()

    @classmethod
    def generate_file_key(cls, filepath: Path | str, stat: os.stat_result, *extra: Any) -> str:
        """
        Key for a file's derived data.

        Args:
            filepath: Path of the source file.
            stat: Its ``os.stat`` result (mtime and size enter the key).
            extra: Additional salt (role, config fingerprint).
        """
        return cls.generate_key(str(filepath), stat.st_mtime_ns, stat.st_size, *extra)

    # Lookups

    def _entry_path(self, key: str, category: str) -> Path:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown cache category: {category}")
        return self.directory / category / f"{key}.json"

    def _expired(self, created_at: float, expires_at: float, now: float) -> bool:
        return now > expires_at or now - created_at > self.max_age

    def _count(self, stat: str, amount: int = 1) -> None:
        with self._lock:
            self._stats[stat] += amount

    def get(self, key: str, category: str = "raw") -> Any | None:
        """
        Look up an entry.

        Args:
            key: Entry key.
            category: One of ``raw``, ``tree``, ``analysis``.

        Returns:
            The stored payload, or None on a miss.
        """
        if not self.enabled:
            self._count("misses")
            return None

        now = self.clock()
        mem_key = f"{category}:{key}"
        with self._lock:
            cached = self._memory.get(mem_key)
            if cached is not None:
                payload, mem_expires = cached
                if now <= mem_expires:
                    self._stats["hits"] += 1
                    return payload
                del self._memory[mem_key]

        path = self._entry_path(key, category)
        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            payload = entry["payload"]
            created_at = float(entry["createdAt"])
            expires_at = float(entry["expiresAt"])
        except FileNotFoundError:
            self._count("misses")
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug("Discarding corrupt cache entry %s: %s", path, e)
            self._unlink(path)
            self._count("misses")
            return None

        if payload is None or self._expired(created_at, expires_at, now):
            self._unlink(path)
            self._count("misses")
            return None

        with self._lock:
            self._stats["hits"] += 1
            self._memory[mem_key] = (
                payload,
                min(expires_at, created_at + self.max_age, now + self.memory_ttl),
            )
        return payload

    def set(
        self,
        key: str,
        payload: Any,
        category: str = "raw",
        ttl: float | None = None,
        source: str | None = None,
    ) -> bool:
        """
        Store an entry in memory and on disk.

        Args:
            key: Entry key.
            payload: JSON-serializable value (not None).
            category: One of ``raw``, ``tree``, ``analysis``.
            ttl: Override for the category TTL, in seconds.
            source: Source file the entry was derived from (for invalidation).

        Returns:
            True if the disk write succeeded.
        """
        if not self.enabled or payload is None:
            return False

        if ttl is None:
            ttl = self.ttl * self.ttl_multipliers.get(category, 1)
        now = self.clock()
        entry = {
            "key": key,
            "category": category,
            "source": source,
            "createdAt": now,
            "expiresAt": now + ttl,
            "payload": payload,
        }

        with self._lock:
            self._memory[f"{category}:{key}"] = (payload, now + min(ttl, self.memory_ttl, self.max_age))

        path = self._entry_path(key, category)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{key}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(entry, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Cache write failed for %s: %s", path, e)
            if tmp_name:
                self._unlink(Path(tmp_name), count=False)
            return False

        self._count("writes")
        return True

    # Maintenance

    def _unlink(self, path: Path, count: bool = True) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not delete cache file %s: %s", path, e)
            return False
        if count:
            self._count("deletes")
        return True

    def _iter_files(self):
        for category in CATEGORIES:
            category_dir = self.directory / category
            if not category_dir.is_dir():
                continue
            for path in sorted(category_dir.iterdir()):
                if path.is_file():
                    yield category, path

    def invalidate(self, key: str, category: str | None = None) -> int:
        """
        Drop an entry from every tier.

        Args:
            key: Entry key.
            category: Limit to one category (default: all).

        Returns:
            Number of disk entries removed.
        """
        removed = 0
        for cat in [category] if category else list(CATEGORIES):
            with self._lock:
                self._memory.pop(f"{cat}:{key}", None)
            if self._unlink(self._entry_path(key, cat)):
                removed += 1
        return removed

    def invalidate_source(self, source: str) -> int:
        """Drop every entry derived from the given source file."""
        removed = 0
        for category, path in self._iter_files():
            if path.suffix != ".json":
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    entry = json.load(f)
            except (OSError, ValueError) as e:
                logger.debug("Skipping unreadable cache file %s: %s", path, e)
                continue
            if isinstance(entry, dict) and entry.get("source") == source:
                removed += self.invalidate(path.stem, category)
        return removed

    def clear_expired(self) -> int:
        """
        Sweep expired, over-age, corrupt and abandoned temporary entries.

        Returns:
            Number of files deleted.
        """
        now = self.clock()
        deleted = 0
        for _, path in self._iter_files():
            if path.suffix == ".tmp":
                try:
                    age = time.time() - path.stat().st_mtime
                except OSError:
                    continue
                if age > self.max_age and self._unlink(path):
                    deleted += 1
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    entry = json.load(f)
                expired = self._expired(float(entry["createdAt"]), float(entry["expiresAt"]), now)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.debug("Removing corrupt cache file %s: %s", path, e)
                expired = True
            if expired and self._unlink(path):
                deleted += 1

        with self._lock:
            for mem_key in [k for k, (_, exp) in self._memory.items() if now > exp]:
                del self._memory[mem_key]

        logger.debug("Cache sweep removed %d entries", deleted)
        return deleted

    def clear(self) -> None:
        """Remove every entry and reset statistics."""
        if self.directory.exists():
            shutil.rmtree(self.directory)
        with self._lock:
            self._memory.clear()
            self._stats = {"hits": 0, "misses": 0, "writes": 0, "deletes": 0}

    def stats(self) -> dict[str, Any]:
        """Hit/miss counters and disk usage."""
        files = 0
        size = 0
        by_category = {category: 0 for category in CATEGORIES}
        for category, path in self._iter_files():
            try:
                size += path.stat().st_size
            except OSError:
                continue
            files += 1
            by_category[category] += 1

        with self._lock:
            stats = dict(self._stats)
            memory_entries = len(self._memory)

        lookups = stats["hits"] + stats["misses"]
        stats.update({
            "hit_rate": round(stats["hits"] / lookups * 100, 2) if lookups else 0.0,
            "memory_entries": memory_entries,
            "disk_entries": files,
            "disk_entries_by_category": by_category,
            "disk_size_bytes": size,
            "directory": str(self.directory),
        })
        return stats
