# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Base class for cached GitHub API resources.

Goal: make each cached resource readable + debuggable by enforcing a small interface:
- cache namespace (`cache_name`) + key format
- TTL policy
- the network fetch and its progress label
- shared cache access pattern (fresh hit / guards / single-flight fetch / write)
- consistent cache statistics reporting
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubAPIClient

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class CachedResourceBase(ABC, Generic[T]):
    """Base class for a cached resource backed by a disk cache object.

    Subclasses define:
    - cache key format
    - how to read/write/drop cache entries
    - TTL policy (freshness check)
    - the actual API fetch implementation
    """

    def __init__(self, api: "GitHubAPIClient"):
        self.api: GitHubAPIClient = api

    @property
    @abstractmethod
    def cache_name(self) -> str:
        """Cache namespace, also used for stats keys (e.g. 'commit_status')."""

    @abstractmethod
    def cache_key(self, **kwargs: Any) -> str:
        """Return a stable cache key for this resource; must start with f"{cache_name}:"."""

    @abstractmethod
    def cache_read(self, *, key: str) -> Optional[Dict[str, Any]]:
        """Read a raw cache entry dict or None if missing."""

    @abstractmethod
    def cache_write(self, *, key: str, value: T, meta: Dict[str, Any]) -> None:
        """Write to cache."""

    @abstractmethod
    def cache_drop_namespace(self) -> int:
        """Drop every entry of this resource's namespace; returns the number dropped."""

    @abstractmethod
    def is_cache_entry_fresh(self, *, entry: Dict[str, Any], now: int) -> bool:
        """TTL policy for the raw entry dict."""

    @abstractmethod
    def value_from_cache_entry(self, *, entry: Dict[str, Any]) -> T:
        """Convert cache entry dict into the returned value."""

    @abstractmethod
    def fetch(self, **kwargs: Any) -> Tuple[T, Dict[str, Any]]:
        """Fetch from network and return (value, meta_for_cache_write)."""

    @abstractmethod
    def empty_value(self) -> T:
        """Value returned when nothing usable is cached and fetching is not allowed."""

    def progress_label(self, **kwargs: Any) -> str:
        """Message logged right before a network fetch."""
        return f"Fetching {self.cache_name}..."

    def inflight_lock_key(self, **kwargs: Any) -> Optional[str]:
        """Optional inflight lock key to dedupe concurrent identical fetches."""
        return None

    def get(self, *, suppressed: bool = False, force: bool = False, **kwargs: Any) -> T:
        """Shared get() flow: cache lookup -> TTL check -> fetch guards -> single-flight fetch -> cache write.

        Args:
            suppressed: Caller-supplied guard (e.g. "a rebase is in progress"). A miss returns
                        `empty_value()` without any network access; cached entries are left as is.
            force: Fetch on a miss even when `suppressed` is set or the client is in cache-only
                   mode. Applies to this call (this key) only.
            **kwargs: Key parameters of the resource (owner/repo/ref/...).
        """
        key = self.cache_key(**kwargs)
        now_i = int(time.time())

        entry = self.cache_read(key=key)
        if entry is not None:
            if self.is_cache_entry_fresh(entry=entry, now=now_i):
                self.api._cache_hit(self.cache_name)
                return self.value_from_cache_entry(entry=entry)
            self.api._cache_miss(f"{self.cache_name}.expired")
        else:
            self.api._cache_miss(f"{self.cache_name}.missing")

        if suppressed and not force:
            self.api._cache_suppressed(self.cache_name)
            _logger.debug("%s: fetch suppressed for %s", self.cache_name, key)
            return self.empty_value()

        if self.api.cache_only_mode and not force:
            # Offline: a stale entry is better than nothing.
            if entry is not None:
                return self.value_from_cache_entry(entry=entry)
            return self.empty_value()

        lock_key = self.inflight_lock_key(**kwargs)
        if lock_key:
            lock = self.api._inflight_lock(lock_key)
            with lock:
                # Re-check cache (another thread may have populated it).
                entry2 = self.cache_read(key=key)
                if entry2 is not None and self.is_cache_entry_fresh(entry=entry2, now=now_i):
                    self.api._cache_hit(self.cache_name)
                    return self.value_from_cache_entry(entry=entry2)
                return self._fetch_and_write(key=key, force=force, **kwargs)

        return self._fetch_and_write(key=key, force=force, **kwargs)

    def _fetch_and_write(self, *, key: str, force: bool, **kwargs: Any) -> T:
        _logger.info(self.progress_label(**kwargs))
        if force:
            with self.api.network_allowed():
                val, meta = self.fetch(**kwargs)
        else:
            val, meta = self.fetch(**kwargs)
        self.cache_write(key=key, value=val, meta=meta)
        self.api._cache_write(self.cache_name)
        return val

    def peek(self, **kwargs: Any) -> T:
        """Cached value regardless of TTL (never fetches)."""
        entry = self.cache_read(key=self.cache_key(**kwargs))
        if entry is None:
            return self.empty_value()
        return self.value_from_cache_entry(entry=entry)

    def invalidate(self) -> int:
        """Drop the whole namespace so the next get() of any key goes to the network."""
        dropped = self.cache_drop_namespace()
        _logger.debug("%s: invalidated (%d entries dropped)", self.cache_name, dropped)
        return dropped

    def refresh(self, *, suppressed: bool = False, force: bool = False, **kwargs: Any) -> T:
        """Manual refresh: invalidate(), then get() this key.

        Args:
            force: Let this one fetch run in cache-only mode or while `suppressed` is set.
                   Nothing outlives the call, so other keys and later get()s keep their guards.
        """
        self.invalidate()
        return self.get(suppressed=suppressed, force=force, **kwargs)
