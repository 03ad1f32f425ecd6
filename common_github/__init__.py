# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub API client for ci-status.

The client owns everything that is about *talking to GitHub*:
- token discovery (explicit token > ~/.config/github-token > gh CLI hosts.yml)
- REST GET with typed errors (404 -> GitHubNotFoundError, rate limit -> GitHubRateLimitError, ...)
- per-run REST + cache statistics (GITHUB_API_STATS)
- rate limit header capture (warns when the core bucket is nearly exhausted)
- process-wide fetch policy shared by cached resources:
    * cache-only ("offline") mode
    * per-key inflight locks (single-flight for identical fetches)
    * per-thread lift of cache-only mode for explicitly forced fetches

Caching itself lives in `common_github/api/*_cached.py`.
"""

from __future__ import annotations

import logging
import threading
import time
import urllib.parse
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import requests
import yaml

from .exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubForbiddenError,
    GitHubNotFoundError,
    GitHubOfflineError,
    GitHubRateLimitError,
    GitHubRequestError,
)

# Module logger
_logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

# Warn once the core bucket drops below this many remaining calls.
RATE_LIMIT_WARN_REMAINING = 50


# ======================================================================================
# GLOBAL API + CACHE STATISTICS
# ======================================================================================

class _GitHubAPIStats:
    """Global singleton for tracking GitHub API REST call and cache statistics."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all statistics (useful for testing)."""
        # REST call stats
        self.rest_calls_total = 0
        self.rest_calls_by_label = {}  # Dict[str, int] - count by API endpoint label
        self.rest_success_total = 0
        self.rest_time_total_s = 0.0
        self.rest_time_by_label_s = {}  # Dict[str, float] - time in seconds by label

        # Error stats
        self.rest_errors_total = 0
        self.rest_errors_by_status = {}  # Dict[int, int]
        self.rest_last_error = {}  # Dict[str, Any]
        self.rest_last_error_label = ""

        # Generic cache stats
        self.cache_hits = {}  # Dict[str, int] - by cache name
        self.cache_misses = {}  # Dict[str, int] - by cache name (".missing"/".expired" suffixes)
        self.cache_writes_ops = {}  # Dict[str, int] - write operations by cache name
        self.cache_suppressed = {}  # Dict[str, int] - fetches skipped by the rebase guard

        # Rate limit info from the last response headers
        self.core_rate_limit = None  # Optional[Dict] - {remaining, limit, reset_epoch, reset_local}


# Global instance - all code writes to this
GITHUB_API_STATS = _GitHubAPIStats()


def _bump(counter: Dict[str, int], name: str) -> None:
    k = str(name or "").strip() or "unknown"
    counter[k] = int(counter.get(k, 0) or 0) + 1


class GitHubAPIClient:
    """GitHub API client with automatic token detection and rate limit handling.

    Example:
        client = GitHubAPIClient()
        status = client.get("/repos/owner/repo/commits/main/status")
    """

    @staticmethod
    def get_github_token_from_file() -> Optional[str]:
        """Get GitHub token from a local config file (preferred).

        We intentionally do NOT read GH_TOKEN/GITHUB_TOKEN env vars.

        Currently supported locations (first match wins):
        - ~/.config/github-token   (single line token)
        - ~/.config/gh/hosts.yml   (GitHub CLI login; oauth_token)
        """
        try:
            token_file = Path.home() / ".config" / "github-token"
            if token_file.exists():
                tok = (token_file.read_text() or "").strip()
                if tok:
                    return tok
        except OSError:
            pass
        return GitHubAPIClient.get_github_token_from_cli()

    @staticmethod
    def get_github_token_from_cli(host: str = "github.com") -> Optional[str]:
        """Get GitHub token from GitHub CLI configuration (~/.config/gh/hosts.yml).

        Returns:
            GitHub token string, or None if not found
        """
        try:
            gh_config_path = Path.home() / '.config' / 'gh' / 'hosts.yml'
            if gh_config_path.exists():
                with open(gh_config_path, 'r') as f:
                    config = yaml.safe_load(f)
                if config and host in config:
                    host_config = config[host] or {}
                    if 'oauth_token' in host_config:
                        return host_config['oauth_token']
                    for _user, user_config in (host_config.get('users') or {}).items():
                        if isinstance(user_config, dict) and 'oauth_token' in user_config:
                            return user_config['oauth_token']
        except (OSError, yaml.YAMLError):
            pass
        return None

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: str = DEFAULT_API_URL,
        require_auth: bool = False,
        cache_only_mode: bool = False,
        debug_rest: bool = False,
    ):
        """Initialize GitHub API client.

        Args:
            token: GitHub personal access token. If not provided, will try:
                   1. ~/.config/github-token (if present)
                   2. GitHub CLI config (~/.config/gh/hosts.yml)
            base_url: REST root, e.g. "https://github.example.com/api/v3" for GitHub Enterprise.
            require_auth: If True, raise an error if we cannot find a token.
            cache_only_mode: Start in offline mode (no network; caches only).
        """
        self.token = token or self.get_github_token_from_file()
        self.require_auth = bool(require_auth)
        self.base_url = str(base_url or DEFAULT_API_URL).rstrip("/")
        self.headers = {'Accept': 'application/vnd.github.v3+json'}
        self.logger = logging.getLogger(self.__class__.__name__)
        self._debug_rest = bool(debug_rest)

        if self.require_auth and not self.token:
            raise RuntimeError(
                "GitHub API authentication is required but no token was found. "
                "Pass --token, or login with gh so ~/.config/gh/hosts.yml exists."
            )
        if self.token:
            self.headers['Authorization'] = f'token {self.token}'

        # When True, avoid any network fetches and rely on caches only.
        self.cache_only_mode: bool = bool(cache_only_mode)

        # Inflight request deduplication: per-key locks to prevent concurrent identical API calls.
        self._inflight_locks_mu = threading.Lock()
        self._inflight_locks: Dict[str, threading.Lock] = {}

        # Per-thread lift of cache-only mode (see network_allowed()).
        self._tls = threading.local()

    def has_token(self) -> bool:
        """Check if a GitHub token is configured."""
        return self.token is not None

    def set_cache_only_mode(self, on: bool = True) -> None:
        """Enable/disable cache-only mode."""
        self.cache_only_mode = bool(on)

    @contextmanager
    def network_allowed(self) -> Iterator[None]:
        """Lift cache-only mode for requests made by the current thread."""
        prev = bool(getattr(self._tls, "network_allowed", False))
        self._tls.network_allowed = True
        try:
            yield
        finally:
            self._tls.network_allowed = prev

    def _network_blocked(self) -> bool:
        return bool(self.cache_only_mode) and not bool(getattr(self._tls, "network_allowed", False))

    # ----------------------------
    # Fetch policy shared by cached resources
    # ----------------------------

    def _inflight_lock(self, key: str) -> "threading.Lock":
        """Return a per-key lock to dedupe concurrent network fetches across threads."""
        k = str(key or "")
        if not k:
            # Fallback: single shared lock
            k = "__default__"
        with self._inflight_locks_mu:
            lk = self._inflight_locks.get(k)
            if lk is None:
                lk = threading.Lock()
                self._inflight_locks[k] = lk
            return lk

    def _cache_hit(self, name: str) -> None:
        _bump(GITHUB_API_STATS.cache_hits, name)

    def _cache_miss(self, name: str) -> None:
        _bump(GITHUB_API_STATS.cache_misses, name)

    def _cache_write(self, name: str) -> None:
        _bump(GITHUB_API_STATS.cache_writes_ops, name)

    def _cache_suppressed(self, name: str) -> None:
        _bump(GITHUB_API_STATS.cache_suppressed, name)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Return per-run cache hit/miss stats."""
        hits_total = sum(int(v) for v in GITHUB_API_STATS.cache_hits.values())
        misses_total = sum(int(v) for v in GITHUB_API_STATS.cache_misses.values())
        return {
            "hits_total": hits_total,
            "misses_total": misses_total,
            "hits": dict(GITHUB_API_STATS.cache_hits),
            "misses": dict(GITHUB_API_STATS.cache_misses),
            "writes": dict(GITHUB_API_STATS.cache_writes_ops),
            "suppressed": dict(GITHUB_API_STATS.cache_suppressed),
        }

    # ----------------------------
    # REST
    # ----------------------------

    def _rest_label_for_url(self, url: str) -> str:
        """Coarse label for a REST request URL (keeps refs / SHAs from exploding cardinality)."""
        try:
            path = urllib.parse.urlparse(str(url or "")).path or ""
        except ValueError:
            path = ""
        if path.endswith("/rate_limit"):
            return "rate_limit"
        parts = [p for p in path.split("/") if p]
        if "repos" in parts:
            rest = parts[parts.index("repos") + 3:]
            # /repos/<owner>/<repo>/commits/<ref>/status
            if rest[:1] == ["commits"] and rest[-1:] == ["status"]:
                return "commit_status"
            if rest:
                return f"repos_{rest[0]}"
        return "/".join(parts[:3]) if parts else "unknown"

    def _record_rate_limit(self, resp: Any) -> None:
        """Capture X-RateLimit-* headers; warn when the bucket is nearly empty."""
        try:
            remaining_hdr = resp.headers.get("X-RateLimit-Remaining")
            limit_hdr = resp.headers.get("X-RateLimit-Limit")
            reset_hdr = resp.headers.get("X-RateLimit-Reset")
            if remaining_hdr is None or limit_hdr is None:
                return
            remaining = int(remaining_hdr)
            limit = int(limit_hdr)
            reset_epoch = int(reset_hdr) if reset_hdr is not None else None
        except (ValueError, TypeError, AttributeError):
            return

        reset_local = (
            datetime.fromtimestamp(reset_epoch).astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
            if reset_epoch is not None
            else "unknown"
        )
        GITHUB_API_STATS.core_rate_limit = {
            "remaining": remaining,
            "limit": limit,
            "reset_epoch": reset_epoch,
            "reset_local": reset_local,
        }
        if remaining < RATE_LIMIT_WARN_REMAINING:
            self.logger.warning(
                "GitHub API rate limit low: %d/%d remaining (resets %s)", remaining, limit, reset_local
            )

    def _rest_get(self, url: str, *, timeout: int = 10, params: Optional[Dict[str, Any]] = None):
        """requests.get wrapper that increments per-run counters."""
        label = self._rest_label_for_url(url)

        # Cache-only mode: do not perform any network operations.
        if self._network_blocked():
            raise GitHubOfflineError(status_code=0, endpoint=url, message="cache_only_mode enabled; refusing network request")

        GITHUB_API_STATS.rest_calls_total += 1
        _bump(GITHUB_API_STATS.rest_calls_by_label, label)
        if self._debug_rest:
            self.logger.debug("GH REST GET [%s] %s params=%s", label, url, params or {})

        t0_req = time.monotonic()
        try:
            resp = requests.get(url, headers=dict(self.headers), params=params, timeout=timeout)
        finally:
            dt = max(0.0, time.monotonic() - t0_req)
            GITHUB_API_STATS.rest_time_total_s += float(dt)
            GITHUB_API_STATS.rest_time_by_label_s[label] = float(GITHUB_API_STATS.rest_time_by_label_s.get(label, 0.0)) + float(dt)

        code = int(resp.status_code or 0)
        if code and code < 400:
            GITHUB_API_STATS.rest_success_total += 1
        else:
            GITHUB_API_STATS.rest_errors_total += 1
            GITHUB_API_STATS.rest_errors_by_status[code] = int(GITHUB_API_STATS.rest_errors_by_status.get(code, 0) or 0) + 1
            GITHUB_API_STATS.rest_last_error = {"status": code, "url": str(url), "body": str(resp.text or "")[:300]}
            GITHUB_API_STATS.rest_last_error_label = label
        if self._debug_rest:
            self.logger.debug("GH REST RESP [%s] status=%s remaining=%s", label, code, resp.headers.get("X-RateLimit-Remaining"))

        self._record_rate_limit(resp)
        return resp

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, timeout: int = 10) -> Any:
        """Make GET request to GitHub API.

        Args:
            endpoint: API endpoint (e.g., "/repos/owner/repo/commits/main/status")
            params: Query parameters
            timeout: Request timeout in seconds

        Returns:
            JSON response (dict or list)

        Raises:
            GitHubNotFoundError: 404 (unknown repo or ref)
            GitHubAuthError: 401
            GitHubRateLimitError: 403/429 with an exhausted rate limit bucket
            GitHubForbiddenError: any other 403
            GitHubOfflineError: cache-only mode is on
            GitHubRequestError: any other HTTP or transport failure
        """
        ep = str(endpoint or "")
        url = f"{self.base_url}{ep}" if ep.startswith('/') else f"{self.base_url}/{ep}"

        try:
            response = self._rest_get(url, timeout=timeout, params=params)
        except requests.exceptions.RequestException as e:
            raise GitHubRequestError(status_code=0, endpoint=ep, message=f"GitHub API request failed for {endpoint}: {e}") from e

        code = int(response.status_code or 0)
        if code == 401:
            raise GitHubAuthError(status_code=401, endpoint=ep, message="GitHub API returned 401 Unauthorized. Check your token.")
        if code in (403, 429):
            if str(response.headers.get("X-RateLimit-Remaining", "")) == "0":
                raise GitHubRateLimitError(
                    status_code=code,
                    endpoint=ep,
                    message="GitHub API rate limit exceeded. Provide --token (or login with gh so ~/.config/gh/hosts.yml exists).",
                )
            raise GitHubForbiddenError(status_code=code, endpoint=ep, message=f"GitHub API returned {code} Forbidden: {response.text}")
        if code == 404:
            raise GitHubNotFoundError(status_code=404, endpoint=ep, message=f"GitHub API returned 404 Not Found for {endpoint}")

        try:
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise GitHubRequestError(status_code=code, endpoint=ep, message=f"GitHub API request failed for {endpoint}: {e}") from e

    def get_rest_call_stats(self) -> Dict[str, Any]:
        """Return REST call stats for the current process/run."""
        return {
            "total": int(GITHUB_API_STATS.rest_calls_total),
            "success_total": int(GITHUB_API_STATS.rest_success_total),
            "error_total": int(GITHUB_API_STATS.rest_errors_total),
            "by_label": dict(GITHUB_API_STATS.rest_calls_by_label),
            "errors_by_status": dict(GITHUB_API_STATS.rest_errors_by_status),
            "time_total_s": float(GITHUB_API_STATS.rest_time_total_s),
            "last_error": dict(GITHUB_API_STATS.rest_last_error),
            "core_rate_limit": GITHUB_API_STATS.core_rate_limit,
        }


__all__ = [
    "DEFAULT_API_URL",
    "GITHUB_API_STATS",
    "GitHubAPIClient",
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubForbiddenError",
    "GitHubNotFoundError",
    "GitHubOfflineError",
    "GitHubRateLimitError",
    "GitHubRequestError",
]
