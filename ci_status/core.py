# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""CIStatusService: the operations a UI calls to show CI status for a repository.

Wires together:
- the git layer (`common.GitUtils`): branches, history, rebase detection, config toggle
- the cached combined-status resource (`common_github.api.commit_status_cached`)
- ref resolution, skip-directive scanning, aggregation and presentation (this package)

Example:
    svc = CIStatusService.from_repo(".")
    if svc.is_enabled():
        report = svc.get_status(svc.select_ref())
        if report is not None:
            print(svc.summarize(report).detail)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from common import CONFIG_ENABLED_OPTION, CONFIG_SECTION, GitUtils
from common_github import GitHubAPIClient
from common_github.api.commit_status_cached import DEFAULT_TTL_S, CommitStatusCache, CommitStatusCached
from common_github.commit_status_types import StatusEntry, StatusReport

from . import aggregator, presenter, refs, skip_directive
from .errors import CIStatusError, NoReportableCommitError, NoTrackingBranchError, RefResolutionError

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"


class CIStatusService:
    """CI status of one GitHub repository, seen from a local working copy."""

    def __init__(
        self,
        git: GitUtils,
        api: GitHubAPIClient,
        *,
        owner: str,
        repo: str,
        ttl_s: int = DEFAULT_TTL_S,
        cache: Optional[CommitStatusCache] = None,
    ):
        self.git = git
        self.api = api
        self.owner = str(owner)
        self.repo = str(repo)
        self.ttl_s = int(ttl_s)
        self._resource = CommitStatusCached(api, ttl_s=self.ttl_s, cache=cache)

    @classmethod
    def from_repo(
        cls,
        repo_path: Union[str, Path] = ".",
        *,
        api: Optional[GitHubAPIClient] = None,
        remote: Optional[str] = None,
        ttl_s: int = DEFAULT_TTL_S,
        cache: Optional[CommitStatusCache] = None,
        verbose: bool = False,
    ) -> "CIStatusService":
        """Build a service for the working copy at `repo_path`.

        The GitHub repository is taken from `remote`, else from the remote the current
        branch pushes to, else from "origin".
        """
        git_utils = GitUtils(repo_path, verbose=verbose)
        remote_name = remote or _default_remote(git_utils)
        url = git_utils.remote_url(remote_name)
        if not url:
            raise CIStatusError(f"No remote named {remote_name!r}")
        owner, repo = refs.parse_github_remote_url(url)
        logger.debug("Using %s/%s (remote %s)", owner, repo, remote_name)
        return cls(git_utils, api or GitHubAPIClient(), owner=owner, repo=repo, ttl_s=ttl_s, cache=cache)

    # ----------------------------
    # Configuration
    # ----------------------------

    def is_enabled(self) -> bool:
        """Per-repository toggle (git config ci-status.enabled, default on); read on every call."""
        return self.git.get_config_bool(CONFIG_SECTION, CONFIG_ENABLED_OPTION, default=True)

    def set_enabled(self, on: bool) -> None:
        self.git.set_config_bool(CONFIG_SECTION, CONFIG_ENABLED_OPTION, bool(on))

    # ----------------------------
    # Refs
    # ----------------------------

    def resolve_default_ref(self, branch: Optional[str] = None) -> str:
        return refs.resolve_default_ref(self.git, branch)

    def most_recent_non_skip_commit(self) -> Optional[str]:
        return skip_directive.most_recent_non_skip_commit(self.git)

    def select_ref(self, explicit: Optional[str] = None) -> str:
        """Ref to query for a user request.

        explicit local branch -> its name on the remote (or its SHA when it is not pushed);
        other explicit names -> the SHA they resolve to locally, else passed through as is;
        nothing -> the current branch's remote name, falling back to the most recent
        commit not marked to skip CI.

        Raises:
            NoReportableCommitError: no branch to use and every commit is marked to skip CI
        """
        if explicit:
            if self.git.is_local_branch(explicit):
                try:
                    return self.resolve_default_ref(explicit)
                except NoTrackingBranchError as e:
                    logger.debug("%s; using its commit instead", e)
            return self.git.rev_parse(explicit) or explicit

        try:
            return self.resolve_default_ref()
        except RefResolutionError as e:
            logger.debug("%s; falling back to the last commit built by CI", e)

        sha = self.most_recent_non_skip_commit()
        if not sha:
            raise NoReportableCommitError()
        return sha

    # ----------------------------
    # Status
    # ----------------------------

    def get_status(self, ref: str) -> Optional[StatusReport]:
        """Report for `ref` (cached for ttl_s).

        Returns None when nothing is cached and fetching is not possible: a rebase is in
        progress, or the client is offline.
        """
        suppressed = self.git.is_rebase_in_progress()
        report = self._resource.get(suppressed=suppressed, owner=self.owner, repo=self.repo, ref=ref)
        if report is None and suppressed:
            logger.info("Rebase in progress; not fetching CI status for %s", ref)
        return report

    def peek_status(self, ref: str) -> Optional[StatusReport]:
        """Whatever is cached for `ref`, fresh or not; never touches the network."""
        return self._resource.peek(owner=self.owner, repo=self.repo, ref=ref)

    def refresh(self, ref: Optional[str] = None, *, force_even_if_suppressed: bool = False) -> Optional[StatusReport]:
        """Drop cached reports and fetch `ref` (default: select_ref()) again.

        Args:
            force_even_if_suppressed: fetch this ref even in offline mode or during a rebase
        """
        # Resolve first: a failing select_ref() must leave the cache untouched.
        ref = ref or self.select_ref()
        suppressed = self.git.is_rebase_in_progress()
        report = self._resource.refresh(
            suppressed=suppressed,
            force=bool(force_even_if_suppressed),
            owner=self.owner,
            repo=self.repo,
            ref=ref,
        )
        if report is None and suppressed:
            logger.info("Rebase in progress; not fetching CI status for %s", ref)
        return report

    def invalidate(self) -> int:
        return self._resource.invalidate()

    # ----------------------------
    # Presentation
    # ----------------------------

    @staticmethod
    def summarize(report: StatusReport) -> aggregator.DisplayState:
        return aggregator.summarize(report)

    @staticmethod
    def format_entry(entry: StatusEntry) -> str:
        return presenter.format_entry(entry)

    def navigate(self, value: Union[str, StatusEntry], choose: presenter.Chooser) -> Optional[str]:
        return presenter.navigate(value, get_status=self.get_status, choose=choose, peek_status=self.peek_status)


def _default_remote(git_utils: GitUtils) -> str:
    try:
        return refs.resolve_push_branch(git_utils).remote
    except RefResolutionError:
        return DEFAULT_REMOTE
