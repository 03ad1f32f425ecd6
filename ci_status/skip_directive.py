# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Find the newest commit that CI was actually asked to build.

Commits whose message carries `[ci skip]` or `[skip ci]` never get statuses, so the
CI-relevant commit is the first one walking back from HEAD without either marker.

Known limitation: the commit found is not checked against the remote. A local-only
commit is reported even though the remote has no status for it yet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from common import GitUtils

# Literal, case-sensitive
SKIP_MARKERS: Tuple[str, ...] = ("[ci skip]", "[skip ci]")


def is_skip_message(message: str) -> bool:
    msg = str(message or "")
    return any(marker in msg for marker in SKIP_MARKERS)


def first_non_skip_commit(commits: Iterable[Tuple[str, str]]) -> Optional[str]:
    """First sha of (sha, message) pairs whose message has no skip marker."""
    for sha, message in commits:
        if not is_skip_message(message):
            return sha
    return None


def most_recent_non_skip_commit(git: "GitUtils", rev: str = "HEAD") -> Optional[str]:
    """Newest commit reachable from `rev` not marked to skip CI, or None if all are."""
    return first_non_skip_commit(git.iter_commit_messages(rev))
