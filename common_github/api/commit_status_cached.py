# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Combined commit status cached API (REST).

Resource:
  GET /repos/{owner}/{repo}/commits/{ref}/status?per_page=100&page={n}

Example API Response:
  {
    "state": "pending",
    "sha": "6dcb09b5b57875f334f61aebed695e2e4193db5e",
    "total_count": 2,
    "statuses": [
      {
        "state": "success",
        "context": "ci/circleci",
        "description": "All tests passed",
        "target_url": "https://circleci.com/gh/owner/repo/123"
      },
      {
        "state": "pending",
        "context": "continuous-integration/jenkins",
        "description": "Build queued",
        "target_url": "https://ci.example.com/job/repo/456"
      }
    ]
  }

404 (the remote has no commit for that ref) is not an error for callers: it becomes the
synthetic `StatusReport.not_found()` and is cached like any other report.

Cache:
  BaseDiskCache instance (disk + memory), one JSON file under the ci-status cache dir.
  Key:   commit_status:<api host>:<owner>/<repo>:<ref>
  Entry: {"ts": <epoch_s>, "report": StatusReport.to_dict()}
"""

from __future__ import annotations

import threading
import time
import urllib.parse
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from cache.cache_base import BaseDiskCache
from common import resolve_cache_path

from ..commit_status_types import StatusReport
from ..exceptions import GitHubNotFoundError
from .base_cached import CachedResourceBase

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubAPIClient


TTL_POLICY_DESCRIPTION = "all refs: ttl_s (default 60s); statuses change while CI runs"

CACHE_NAME = "commit_status"
# host: netloc of the client's base_url (api.github.com, or a GitHub Enterprise host)
CACHE_KEY_FORMAT = "commit_status:{host}:{owner}/{repo}:{ref}"
CACHE_FILE_DEFAULT = "commit_status.json"
DEFAULT_TTL_S = 60

# The API caps per_page at 100; a ref with more statuses than this is paged.
PER_PAGE = 100
MAX_PAGES = 10


def api_host(base_url: str) -> str:
    """Lower-cased host[:port] of a REST root, e.g. "ghe.example.com" for "https://ghe.example.com/api/v3"."""
    return (urllib.parse.urlparse(str(base_url or "")).netloc or "").lower()


# =============================================================================
# Cache Implementation
# =============================================================================

class CommitStatusCache(BaseDiskCache):
    """Cache for combined commit status reports."""

    _SCHEMA_VERSION = 1

    def __init__(self, *, cache_file: Path):
        super().__init__(cache_file=cache_file, schema_version=self._SCHEMA_VERSION)

    def get_entry(self, key: str) -> Optional[Dict[str, Any]]:
        """Raw entry {"ts", "report"} or None; the caller applies the TTL."""
        with self._mu:
            self._load_once()
            ent = self._check_item(key)
            if not isinstance(ent, dict) or not isinstance(ent.get("report"), dict):
                return None
            return ent

    def put(self, key: str, report: StatusReport, *, ts: Optional[int] = None) -> None:
        with self._mu:
            self._load_once()
            self._set_item(key, {"ts": int(ts if ts is not None else time.time()), "report": report.to_dict()})
            self._persist()

    def drop_prefix(self, prefix: str) -> int:
        with self._mu:
            self._load_once()
            dropped = self._delete_prefix(prefix)
            self._persist()
            return dropped


def _get_cache_file() -> Path:
    """Cache file path (re-resolved on every call so CI_STATUS_CACHE_DIR overrides apply)."""
    return resolve_cache_path(CACHE_FILE_DEFAULT)


_CACHES_MU = threading.Lock()
_CACHES: Dict[str, CommitStatusCache] = {}


def default_cache() -> CommitStatusCache:
    """Process-wide cache instance for the current cache file location."""
    path = _get_cache_file()
    with _CACHES_MU:
        cache = _CACHES.get(str(path))
        if cache is None:
            cache = CommitStatusCache(cache_file=path)
            _CACHES[str(path)] = cache
        return cache


# =============================================================================
# Public API
# =============================================================================


class CommitStatusCached(CachedResourceBase[Optional[StatusReport]]):
    def __init__(self, api: "GitHubAPIClient", *, ttl_s: int = DEFAULT_TTL_S, cache: Optional[CommitStatusCache] = None):
        super().__init__(api)
        self._ttl_s = int(ttl_s)
        self._cache = cache if cache is not None else default_cache()

    @property
    def cache_name(self) -> str:
        return CACHE_NAME

    def progress_label(self, **kwargs: Any) -> str:
        return f"Fetching CI status for {kwargs['ref']}..."

    def inflight_lock_key(self, **kwargs: Any) -> Optional[str]:
        return self.cache_key(**kwargs)

    def cache_key(self, **kwargs: Any) -> str:
        return CACHE_KEY_FORMAT.format(
            host=api_host(self.api.base_url),
            owner=str(kwargs["owner"]),
            repo=str(kwargs["repo"]),
            ref=str(kwargs["ref"]),
        )

    def empty_value(self) -> Optional[StatusReport]:
        return None

    def cache_read(self, *, key: str) -> Optional[Dict[str, Any]]:
        return self._cache.get_entry(key)

    def cache_write(self, *, key: str, value: Optional[StatusReport], meta: Dict[str, Any]) -> None:
        if value is None:
            return
        self._cache.put(key, value, ts=meta.get("fetched_at"))

    def cache_drop_namespace(self) -> int:
        return self._cache.drop_prefix(f"{CACHE_NAME}:")

    def is_cache_entry_fresh(self, *, entry: Dict[str, Any], now: int) -> bool:
        ts = int(entry.get("ts", 0) or 0)
        return bool(ts) and (now - ts) < max(0, self._ttl_s)

    def value_from_cache_entry(self, *, entry: Dict[str, Any]) -> Optional[StatusReport]:
        return StatusReport.from_dict(entry["report"])

    def fetch(self, **kwargs: Any) -> Tuple[Optional[StatusReport], Dict[str, Any]]:
        owner = str(kwargs["owner"])
        repo = str(kwargs["repo"])
        ref = str(kwargs["ref"])
        endpoint = f"/repos/{owner}/{repo}/commits/{urllib.parse.quote(ref, safe='/')}/status"

        try:
            data = self.api.get(endpoint, params={"per_page": PER_PAGE, "page": 1}, timeout=10) or {}
        except GitHubNotFoundError:
            return StatusReport.not_found(), {"fetched_at": int(time.time())}

        statuses: List[Dict[str, Any]] = list(data.get("statuses") or [])
        total = int(data.get("total_count") or len(statuses))
        page = 1
        while len(statuses) < total and page < MAX_PAGES:
            page += 1
            more = self.api.get(endpoint, params={"per_page": PER_PAGE, "page": page}, timeout=10) or {}
            batch = list(more.get("statuses") or [])
            if not batch:
                break
            statuses.extend(batch)

        report = StatusReport.from_api_dict({**data, "statuses": statuses})
        return report, {"fetched_at": int(time.time())}


def get_commit_status_cached(
    api: "GitHubAPIClient",
    *,
    owner: str,
    repo: str,
    ref: str,
    ttl_s: int = DEFAULT_TTL_S,
    suppressed: bool = False,
    cache: Optional[CommitStatusCache] = None,
) -> Optional[StatusReport]:
    return CommitStatusCached(api, ttl_s=ttl_s, cache=cache).get(suppressed=suppressed, owner=owner, repo=repo, ref=ref)


def peek_commit_status_cached(
    api: "GitHubAPIClient", *, owner: str, repo: str, ref: str, cache: Optional[CommitStatusCache] = None
) -> Optional[StatusReport]:
    return CommitStatusCached(api, cache=cache).peek(owner=owner, repo=repo, ref=ref)


def invalidate_commit_status_cache(api: "GitHubAPIClient", *, cache: Optional[CommitStatusCache] = None) -> int:
    return CommitStatusCached(api, cache=cache).invalidate()


def refresh_commit_status_cached(
    api: "GitHubAPIClient",
    *,
    owner: str,
    repo: str,
    ref: str,
    ttl_s: int = DEFAULT_TTL_S,
    suppressed: bool = False,
    force: bool = False,
    cache: Optional[CommitStatusCache] = None,
) -> Optional[StatusReport]:
    return CommitStatusCached(api, ttl_s=ttl_s, cache=cache).refresh(
        suppressed=suppressed, force=force, owner=owner, repo=repo, ref=ref
    )


def get_cache_sizes(cache: Optional[CommitStatusCache] = None) -> Tuple[int, int]:
    """Get cache sizes for stats reporting (memory count, initial disk count)."""
    return (cache if cache is not None else default_cache()).get_cache_sizes()
