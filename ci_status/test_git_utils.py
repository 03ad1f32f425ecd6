# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for common.GitUtils and CIStatusService.from_repo() against real temporary repositories.

Run from the repository root:
    pytest ci_status/test_git_utils.py -v
"""

import shutil
import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import git

from ci_status.core import CIStatusService
from ci_status.errors import CIStatusError
from ci_status.skip_directive import most_recent_non_skip_commit
from common import GitUtils
from common_github import GitHubAPIClient
from common_github.api.commit_status_cached import CommitStatusCache

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")

ACTOR = git.Actor("CI Status Test", "ci-status@example.com")


def _commit(repo, message):
    path = Path(repo.working_tree_dir) / "file.txt"
    with open(path, "a") as f:
        f.write(message.splitlines()[0] + "\n")
    repo.index.add([str(path)])
    return repo.index.commit(message, author=ACTOR, committer=ACTOR).hexsha


@pytest.fixture
def repo(tmp_path):
    r = git.Repo.init(tmp_path / "work")
    r.git.symbolic_ref("HEAD", "refs/heads/main")
    r.create_remote("origin", "git@github.com:owner/repo.git")
    return r


@pytest.fixture
def utils(repo):
    return GitUtils(repo.working_tree_dir)


# ============================================================================
# Branches / remotes
# ============================================================================

def test_current_branch_and_detached_head(repo, utils):
    _commit(repo, "Initial commit")
    assert utils.get_current_branch() == "main"

    repo.git.checkout("--detach")
    assert utils.get_current_branch() is None


def test_opened_from_subdirectory(repo):
    _commit(repo, "Initial commit")
    sub = Path(repo.working_tree_dir) / "sub" / "dir"
    sub.mkdir(parents=True)

    assert GitUtils(sub).get_current_branch() == "main"


def test_not_a_repository(tmp_path):
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(git.InvalidGitRepositoryError):
        GitUtils(plain)


def test_push_branch_follows_configured_upstream(repo, utils):
    _commit(repo, "Initial commit")
    repo.create_head("feature/x")
    with repo.config_writer() as cw:
        cw.set_value('branch "feature/x"', "remote", "origin")
        cw.set_value('branch "feature/x"', "merge", "refs/heads/fx")

    assert utils.get_push_branch("feature/x") == "origin/fx"
    assert utils.get_push_branch("main") is None
    assert utils.is_local_branch("feature/x")
    assert not utils.is_local_branch("fx")


def test_remotes(utils):
    assert utils.remote_names() == ["origin"]
    assert utils.remote_url("origin") == "git@github.com:owner/repo.git"
    assert utils.remote_url("upstream") is None


# ============================================================================
# Rebase detection
# ============================================================================

def test_rebase_detection(repo, utils):
    git_dir = Path(repo.git_dir)
    assert not utils.is_rebase_in_progress()

    (git_dir / "rebase-merge").mkdir()
    assert utils.is_rebase_in_progress()
    (git_dir / "rebase-merge").rmdir()

    (git_dir / "rebase-apply").mkdir()
    assert utils.is_rebase_in_progress()

    # `git am` uses the same directory
    (git_dir / "rebase-apply" / "applying").touch()
    assert not utils.is_rebase_in_progress()


# ============================================================================
# History / rev-parse
# ============================================================================

def test_commit_messages_newest_first(repo, utils):
    first = _commit(repo, "Add feature")
    second = _commit(repo, "Fix typo [ci skip]")

    history = list(utils.iter_commit_messages())

    assert [sha for sha, _ in history] == [second, first]
    assert history[0][1].startswith("Fix typo [ci skip]")
    assert most_recent_non_skip_commit(utils) == first


def test_commit_messages_max_count(repo, utils):
    for i in range(3):
        _commit(repo, f"Commit {i}")

    assert len(list(utils.iter_commit_messages(max_count=2))) == 2


def test_empty_repository_has_no_history(utils):
    assert list(utils.iter_commit_messages()) == []
    assert most_recent_non_skip_commit(utils) is None


def test_rev_parse(repo, utils):
    sha = _commit(repo, "Initial commit")
    repo.create_tag("v1.0")

    assert utils.rev_parse("main") == sha
    assert utils.rev_parse("v1.0") == sha
    assert utils.rev_parse(sha[:8]) == sha
    assert utils.rev_parse("no-such-ref") is None


# ============================================================================
# Config toggle
# ============================================================================

def test_config_bool_roundtrip(repo, utils):
    assert utils.get_config_bool("ci-status", "enabled", default=True) is True

    utils.set_config_bool("ci-status", "enabled", False)

    assert utils.get_config_bool("ci-status", "enabled", default=True) is False
    assert GitUtils(repo.working_tree_dir).get_config_bool("ci-status", "enabled", default=True) is False


# ============================================================================
# CIStatusService.from_repo()
# ============================================================================

def test_from_repo_reads_owner_and_repo(repo, tmp_path):
    _commit(repo, "Initial commit")
    cache = CommitStatusCache(cache_file=tmp_path / "commit_status.json")

    svc = CIStatusService.from_repo(repo.working_tree_dir, api=GitHubAPIClient(token="test-token"), cache=cache)

    assert (svc.owner, svc.repo) == ("owner", "repo")
    assert svc.is_enabled()
    svc.set_enabled(False)
    assert not svc.is_enabled()


def test_from_repo_unknown_remote(repo, tmp_path):
    cache = CommitStatusCache(cache_file=tmp_path / "commit_status.json")

    with pytest.raises(CIStatusError):
        CIStatusService.from_repo(
            repo.working_tree_dir, api=GitHubAPIClient(token="test-token"), remote="upstream", cache=cache
        )
