# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for common_github/api/commit_status_cached.py (and the client policy it relies on).

Run from the repository root:
    pytest common_github/test_commit_status_cached.py -v
"""

import json
import sys
import threading
import time
import urllib.parse
from pathlib import Path

import pytest
import requests

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from common_github import GITHUB_API_STATS, GitHubAPIClient
from common_github.api.commit_status_cached import (
    CommitStatusCache,
    CommitStatusCached,
    api_host,
    get_commit_status_cached,
)
from common_github.commit_status_types import NOT_FOUND_MESSAGE, StatusReport
from common_github.exceptions import (
    GitHubAuthError,
    GitHubRateLimitError,
    GitHubRequestError,
)

STATUS_PATH = "/repos/owner/repo/commits/main/status"
MAIN_KEY = "commit_status:api.github.com:owner/repo:main"


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = dict(headers or {})
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class _FakeGitHub:
    """Stands in for requests.get; responses are keyed by (path, page)."""

    def __init__(self, delay_s=0.0):
        self.calls = []
        self.responses = {}
        self.delay_s = delay_s
        self._mu = threading.Lock()

    def add(self, path, payload, *, page=1, status_code=200, headers=None):
        self.responses[(path, page)] = _FakeResponse(status_code, payload, headers)

    def __call__(self, url, headers=None, params=None, timeout=None):
        path = urllib.parse.urlparse(url).path
        page = int((params or {}).get("page", 1))
        with self._mu:
            self.calls.append((path, page))
        if self.delay_s:
            time.sleep(self.delay_s)
        resp = self.responses.get((path, page))
        if resp is None:
            return _FakeResponse(404, {"message": "Not Found"})
        return resp


def _status(state, context, description=None, target_url=None):
    return {"state": state, "context": context, "description": description, "target_url": target_url}


def _payload(state, statuses, total_count=None):
    return {
        "state": state,
        "sha": "6dcb09b5b57875f334f61aebed695e2e4193db5e",
        "total_count": len(statuses) if total_count is None else total_count,
        "statuses": statuses,
    }


@pytest.fixture(autouse=True)
def _reset_stats():
    GITHUB_API_STATS.reset()
    yield
    GITHUB_API_STATS.reset()


@pytest.fixture
def fake_github(monkeypatch):
    fake = _FakeGitHub()
    monkeypatch.setattr(requests, "get", fake)
    return fake


@pytest.fixture
def api():
    return GitHubAPIClient(token="test-token")


@pytest.fixture
def cache(tmp_path):
    return CommitStatusCache(cache_file=tmp_path / "commit_status.json")


def _get(api, cache, ref="main", **kw):
    ttl_s = kw.pop("ttl_s", 60)
    return get_commit_status_cached(api, owner="owner", repo="repo", ref=ref, ttl_s=ttl_s, cache=cache, **kw)


# ============================================================================
# Fetch + parse
# ============================================================================

def test_fetch_parses_combined_status(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("pending", [
        _status("success", "ci/build", "Build ok", "https://ci.example.com/1"),
        _status("pending", "ci/test"),
    ]))

    report = _get(api, cache)

    assert report.state == "pending"
    assert report.total_count == 2
    assert [s.context for s in report.statuses] == ["ci/build", "ci/test"]
    assert report.statuses[0].target_url == "https://ci.example.com/1"
    assert report.statuses[1].description is None
    assert report.sha.startswith("6dcb09b5")


def test_ref_with_slash_keeps_path_separators(api, cache, fake_github):
    path = "/repos/owner/repo/commits/feature/x/status"
    fake_github.add(path, _payload("success", [_status("success", "ci")]))

    report = _get(api, cache, ref="feature/x")

    assert report.state == "success"
    assert fake_github.calls == [(path, 1)]


def test_statuses_are_paged(api, cache, fake_github):
    first = [_status("success", f"ci/{i}") for i in range(100)]
    second = [_status("success", f"ci/{i}") for i in range(100, 130)]
    fake_github.add(STATUS_PATH, _payload("success", first, total_count=130))
    fake_github.add(STATUS_PATH, _payload("success", second, total_count=130), page=2)

    report = _get(api, cache)

    assert report.total_count == 130
    assert len(report.statuses) == 130
    assert fake_github.calls == [(STATUS_PATH, 1), (STATUS_PATH, 2)]


# ============================================================================
# Not found / transport errors
# ============================================================================

def test_unknown_ref_gives_synthetic_error_report(api, cache, fake_github):
    report = _get(api, cache, ref="no-such-branch")

    assert report.total_count == 0
    assert report.state == "error"
    assert report.message == NOT_FOUND_MESSAGE
    assert report.statuses == ()
    assert report.is_not_found


def test_not_found_report_is_cached(api, cache, fake_github):
    _get(api, cache, ref="no-such-branch")
    _get(api, cache, ref="no-such-branch")

    assert len(fake_github.calls) == 1


@pytest.mark.parametrize(
    "status_code,headers,exc_type",
    [
        (500, {}, GitHubRequestError),
        (401, {}, GitHubAuthError),
        (403, {"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "60"}, GitHubRateLimitError),
    ],
)
def test_transport_errors_propagate_and_are_not_cached(api, cache, fake_github, status_code, headers, exc_type):
    fake_github.add(STATUS_PATH, {"message": "nope"}, status_code=status_code, headers=headers)

    with pytest.raises(exc_type):
        _get(api, cache)

    assert cache.get_entry(MAIN_KEY) is None


def test_network_failure_becomes_request_error(api, cache, monkeypatch):
    def boom(*_args, **_kwargs):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(requests, "get", boom)

    with pytest.raises(GitHubRequestError):
        _get(api, cache)


def test_low_rate_limit_logs_warning(api, cache, fake_github, caplog):
    fake_github.add(
        STATUS_PATH,
        _payload("success", [_status("success", "ci")]),
        headers={"X-RateLimit-Remaining": "3", "X-RateLimit-Limit": "60", "X-RateLimit-Reset": "1700000000"},
    )

    with caplog.at_level("WARNING"):
        _get(api, cache)

    assert "rate limit low" in caplog.text
    assert GITHUB_API_STATS.core_rate_limit["remaining"] == 3


# ============================================================================
# TTL / invalidation
# ============================================================================

def test_repeat_get_within_ttl_fetches_once(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))

    first = _get(api, cache)
    second = _get(api, cache)

    assert first == second
    assert len(fake_github.calls) == 1
    assert GITHUB_API_STATS.cache_hits == {"commit_status": 1}
    assert GITHUB_API_STATS.cache_misses == {"commit_status.missing": 1}


def test_expired_entry_is_refetched(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    old = StatusReport.from_api_dict(_payload("pending", [_status("pending", "ci")]))
    cache.put(MAIN_KEY, old, ts=int(time.time()) - 600)

    report = _get(api, cache, ttl_s=60)

    assert report.state == "success"
    assert len(fake_github.calls) == 1
    assert GITHUB_API_STATS.cache_misses == {"commit_status.expired": 1}


def test_invalidate_forces_next_fetch(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    resource = CommitStatusCached(api, cache=cache)

    resource.get(owner="owner", repo="repo", ref="main")
    dropped = resource.invalidate()
    resource.get(owner="owner", repo="repo", ref="main")

    assert dropped == 1
    assert len(fake_github.calls) == 2


def test_invalidate_is_persisted(api, cache, fake_github, tmp_path):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    _get(api, cache)

    CommitStatusCached(api, cache=cache).invalidate()
    reloaded = CommitStatusCache(cache_file=tmp_path / "commit_status.json")

    assert reloaded.get_entry(MAIN_KEY) is None


def test_entries_are_shared_through_the_cache_file(api, cache, fake_github, tmp_path):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    _get(api, cache)

    other = CommitStatusCache(cache_file=tmp_path / "commit_status.json")
    report = _get(api, other)

    assert report.state == "success"
    assert len(fake_github.calls) == 1


# ============================================================================
# Suppression (rebase guard) / offline mode
# ============================================================================

def test_suppressed_miss_returns_none_without_network(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))

    assert _get(api, cache, suppressed=True) is None
    assert fake_github.calls == []
    assert GITHUB_API_STATS.cache_suppressed == {"commit_status": 1}


def test_suppressed_fresh_hit_is_served(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    _get(api, cache)

    report = _get(api, cache, suppressed=True)

    assert report is not None and report.state == "success"
    assert len(fake_github.calls) == 1


def test_forced_refresh_fetches_through_suppression(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    resource = CommitStatusCached(api, cache=cache)

    report = resource.refresh(suppressed=True, force=True, owner="owner", repo="repo", ref="main")

    assert report is not None and report.state == "success"
    assert len(fake_github.calls) == 1


def test_forced_refresh_does_not_unlock_other_refs(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    fake_github.add("/repos/owner/repo/commits/other/status", _payload("success", [_status("success", "ci")]))
    resource = CommitStatusCached(api, cache=cache)

    resource.refresh(suppressed=True, force=True, owner="owner", repo="repo", ref="main")
    other = resource.get(suppressed=True, owner="owner", repo="repo", ref="other")
    again = resource.get(suppressed=True, owner="owner", repo="repo", ref="other")

    assert other is None and again is None
    assert fake_github.calls == [(STATUS_PATH, 1)]


def test_unforced_refresh_during_suppression_drops_and_does_not_fetch(api, cache, fake_github):
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    resource = CommitStatusCached(api, cache=cache)
    resource.get(owner="owner", repo="repo", ref="main")

    report = resource.refresh(suppressed=True, owner="owner", repo="repo", ref="main")

    assert report is None
    assert cache.get_entry(MAIN_KEY) is None
    assert len(fake_github.calls) == 1


def test_offline_serves_stale_entry(cache, fake_github):
    api = GitHubAPIClient(token="test-token", cache_only_mode=True)
    stale = StatusReport.from_api_dict(_payload("failure", [_status("failure", "ci")]))
    cache.put(MAIN_KEY, stale, ts=int(time.time()) - 600)

    assert _get(api, cache) == stale
    assert _get(api, cache, ref="never-seen") is None
    assert fake_github.calls == []


def test_offline_forced_refresh_reaches_network(cache, fake_github):
    api = GitHubAPIClient(token="test-token", cache_only_mode=True)
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    resource = CommitStatusCached(api, cache=cache)

    report = resource.refresh(force=True, owner="owner", repo="repo", ref="main")
    after = resource.get(owner="owner", repo="repo", ref="other")

    assert report.state == "success"
    assert after is None
    assert api.cache_only_mode is True
    assert len(fake_github.calls) == 1


# ============================================================================
# Several GitHub hosts sharing one cache
# ============================================================================

def test_api_host_is_the_netloc():
    assert api_host("https://api.github.com") == "api.github.com"
    assert api_host("https://GHE.example.com/api/v3") == "ghe.example.com"
    assert api_host("http://localhost:8080/api/v3") == "localhost:8080"


def test_same_repo_on_two_hosts_has_separate_entries(cache, fake_github):
    public = GitHubAPIClient(token="test-token", base_url="https://api.github.com")
    enterprise = GitHubAPIClient(token="test-token", base_url="https://ghe.example.com/api/v3")
    fake_github.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    fake_github.add("/api/v3" + STATUS_PATH, _payload("failure", [_status("failure", "ci")]))

    first = _get(public, cache)
    second = _get(enterprise, cache)

    assert first.state == "success"
    assert second.state == "failure"
    assert fake_github.calls == [(STATUS_PATH, 1), ("/api/v3" + STATUS_PATH, 1)]
    assert cache.get_entry("commit_status:ghe.example.com:owner/repo:main") is not None
    assert _get(public, cache).state == "success"
    assert len(fake_github.calls) == 2


# ============================================================================
# Single-flight
# ============================================================================

def test_concurrent_gets_for_same_ref_fetch_once(api, cache, monkeypatch):
    fake = _FakeGitHub(delay_s=0.05)
    fake.add(STATUS_PATH, _payload("success", [_status("success", "ci")]))
    monkeypatch.setattr(requests, "get", fake)
    resource = CommitStatusCached(api, cache=cache)

    results = []
    results_mu = threading.Lock()

    def worker():
        report = resource.get(owner="owner", repo="repo", ref="main")
        with results_mu:
            results.append(report)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(fake.calls) == 1
    assert len(results) == 8
    assert all(r.state == "success" for r in results)
