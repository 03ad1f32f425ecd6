#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Base class for disk-backed caches with locking and persistence.

On-disk schema:
    {"version": <int>, "items": {"<key>": {"ts": <epoch_s>, ...}, ...}}
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Set, Tuple

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - best-effort on non-POSIX
    fcntl = None  # type: ignore


@dataclass
class BaseCacheStats:
    """Basic cache statistics tracked automatically by BaseDiskCache."""
    hit: int = 0
    miss: int = 0
    write: int = 0
    delete: int = 0


class BaseDiskCache:
    """Base class for thread-safe disk-backed caches with inter-process locking.

    Provides:
    - Thread-safe in-memory cache with Lock
    - Disk persistence with inter-process locking (fcntl)
    - Lazy loading (load on first access)
    - Merge on write (concurrent writers keep each other's entries, deletions stick)

    Subclasses implement the cache-specific get/put methods on top of
    `_check_item()`, `_set_item()` and `_delete_prefix()`, holding `self._mu`.
    """

    def __init__(self, *, cache_file: Path, schema_version: int = 1):
        self._mu = Lock()
        self._cache_file = Path(cache_file)
        self._schema_version = schema_version
        self._data: Dict[str, Any] = {}
        self._deleted: Set[str] = set()
        self._loaded = False
        self._dirty = False
        self._initial_disk_count: Optional[int] = None
        self.stats = BaseCacheStats()

    @property
    def cache_file(self) -> Path:
        return self._cache_file

    def _lock_file_path(self) -> Path:
        """Path to lock file (next to cache file)."""
        return self._cache_file.with_name(f".{self._cache_file.name}.lock")

    def _acquire_disk_lock(self, *, timeout_s: float = 10.0) -> Optional[object]:
        """Best-effort inter-process lock for the cache file.

        Returns file handle on success, None on failure/timeout.
        """
        if fcntl is None:
            return None

        lock_path = self._lock_file_path()
        lock_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            fh = open(lock_path, "w")
        except OSError:
            return None

        start = time.monotonic()
        while time.monotonic() - start < float(timeout_s):
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return fh
            except OSError:
                time.sleep(0.1)

        fh.close()
        return None

    def _release_disk_lock(self, lock_fh: Optional[object]) -> None:
        """Release inter-process lock."""
        if lock_fh is None:
            return
        try:
            if fcntl is not None:
                fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        finally:
            lock_fh.close()

    def _read_disk_items(self) -> Dict[str, Any]:
        """Items currently on disk; unreadable or foreign files count as empty."""
        if not self._cache_file.exists():
            return {}
        try:
            raw = json.loads(self._cache_file.read_text() or "{}")
        except (OSError, ValueError):
            return {}
        if not isinstance(raw, dict) or raw.get("version") != self._schema_version:
            return {}
        items = raw.get("items")
        return dict(items) if isinstance(items, dict) else {}

    def _load_once(self) -> None:
        """Load cache from disk (once per instance)."""
        if self._loaded:
            return
        self._loaded = True

        items = self._read_disk_items()
        self._initial_disk_count = len(items)
        self._data = {"version": self._schema_version, "items": items}

    def _persist(self) -> None:
        """Persist cache to disk with inter-process merge (best-effort)."""
        if not self._dirty:
            return

        self._cache_file.parent.mkdir(parents=True, exist_ok=True)
        mem_items: Dict[str, Any] = dict(self._get_items())

        lock_fh = self._acquire_disk_lock(timeout_s=10.0)
        try:
            # Merge: disk first, then memory wins for conflicts; our deletions win over disk.
            disk_items = self._read_disk_items()
            for key in self._deleted:
                disk_items.pop(key, None)
            merged = {
                "version": self._schema_version,
                "items": {**disk_items, **mem_items},
            }

            # Atomic write (tmp file + rename)
            tmp = f"{self._cache_file}.tmp.{os.getpid()}"
            Path(tmp).write_text(json.dumps(merged, separators=(",", ":")))
            os.replace(tmp, str(self._cache_file))

            self._data = merged
            self._deleted.clear()
            self._dirty = False
        finally:
            self._release_disk_lock(lock_fh)

    def flush(self) -> None:
        """Persist cache to disk."""
        with self._mu:
            self._persist()

    def get_cache_sizes(self) -> Tuple[int, int]:
        """Return (mem_count, disk_count) for cache entries.

        disk_count is the initial count before this run's modifications.
        """
        with self._mu:
            self._load_once()
            disk_count = self._initial_disk_count if self._initial_disk_count is not None else 0
            return (len(self._get_items()), disk_count)

    def _get_items(self) -> Dict[str, Any]:
        """Get items dict (for subclass use)."""
        items = self._data.get("items") if isinstance(self._data, dict) else None
        if not isinstance(items, dict):
            items = {}
            self._data = {"version": self._schema_version, "items": items}
        return items

    def _check_item(self, key: str) -> Optional[Any]:
        """Return the item for `key` (or None), counting a hit or a miss."""
        value = self._get_items().get(key)
        if value is not None:
            self.stats.hit += 1
        else:
            self.stats.miss += 1
        return value

    def _peek_item(self, key: str) -> Optional[Any]:
        """Return the item for `key` without touching hit/miss stats."""
        return self._get_items().get(key)

    def _set_item(self, key: str, value: Any) -> None:
        """Set an item and mark dirty."""
        self._get_items()[key] = value
        self._deleted.discard(key)
        self._dirty = True
        self.stats.write += 1

    def _delete_prefix(self, prefix: str) -> int:
        """Delete every item whose key starts with `prefix`; returns the number removed.

        Keys only present on disk (written by another process after we loaded) are
        removed too, since they are dropped during the merge in `_persist()`.
        """
        items = self._get_items()
        doomed = [k for k in items if k.startswith(prefix)]
        doomed_disk = [k for k in self._read_disk_items() if k.startswith(prefix)]
        for key in doomed:
            del items[key]
        self._deleted.update(doomed)
        self._deleted.update(doomed_disk)
        if doomed or doomed_disk:
            self._dirty = True
        self.stats.delete += len(doomed)
        return len(doomed)
