# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Ref resolution: which name to ask the remote about.

A local branch may be pushed under a different name (local `feature/x` pushing to
`origin/fx`); the remote only knows `fx`, so that is the ref to query.
"""

from __future__ import annotations

import re
import urllib.parse
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from .errors import (
    MalformedRemoteBranchError,
    NoCurrentBranchError,
    NoTrackingBranchError,
    RemoteURLError,
)

if TYPE_CHECKING:  # pragma: no cover
    from common import GitUtils

# scp-like syntax: [user@]host:path (no scheme)
_SCP_LIKE_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[^:/\s]+):(?P<path>[^/].*)$")


@dataclass(frozen=True)
class RemoteBranch:
    remote: str
    branch: str

    def __str__(self) -> str:
        return f"{self.remote}/{self.branch}"


def parse_remote_branch(name: str, remotes: Iterable[str] = ()) -> RemoteBranch:
    """Split "<remote>/<branch>" into its parts.

    Known remote names are tried longest first, so a remote called "me/fork" splits
    "me/fork/topic" as ("me/fork", "topic"). Otherwise the first "/" separates the two.

    Raises:
        MalformedRemoteBranchError: no separator, or an empty remote or branch part
    """
    s = str(name or "").strip()
    for remote in sorted((str(r) for r in remotes if r), key=len, reverse=True):
        prefix = f"{remote}/"
        if s.startswith(prefix) and len(s) > len(prefix):
            return RemoteBranch(remote=remote, branch=s[len(prefix):])

    remote, sep, branch = s.partition("/")
    if not sep or not remote or not branch:
        raise MalformedRemoteBranchError(s)
    return RemoteBranch(remote=remote, branch=branch)


def resolve_push_branch(git: "GitUtils", branch: Optional[str] = None) -> RemoteBranch:
    """Remote-tracking branch that `branch` (default: the checked-out branch) pushes to."""
    branch = branch or git.get_current_branch()
    if not branch:
        raise NoCurrentBranchError()
    push = git.get_push_branch(branch)
    if not push:
        raise NoTrackingBranchError(branch)
    return parse_remote_branch(push, git.remote_names())


def resolve_default_ref(git: "GitUtils", branch: Optional[str] = None) -> str:
    """Ref to query for `branch` (default: the checked-out branch): its name on the remote.

    Raises:
        NoCurrentBranchError: no branch given and HEAD is detached
        NoTrackingBranchError: the branch has neither a push branch nor an upstream
    """
    return resolve_push_branch(git, branch).branch


def parse_github_remote_url(url: str) -> Tuple[str, str]:
    """(owner, repo) from a GitHub remote URL.

    Examples:
      git@github.com:owner/repo.git          -> ("owner", "repo")
      ssh://git@github.com/owner/repo.git    -> ("owner", "repo")
      https://github.com/owner/repo          -> ("owner", "repo")
    """
    s = str(url or "").strip()
    m = _SCP_LIKE_RE.match(s) if "://" not in s else None
    if m:
        path = m.group("path")
    else:
        try:
            parsed = urllib.parse.urlparse(s)
        except ValueError as e:
            raise RemoteURLError(s) from e
        if not parsed.scheme or not parsed.netloc:
            raise RemoteURLError(s)
        path = parsed.path

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        raise RemoteURLError(s)
    return parts[-2], parts[-1]
