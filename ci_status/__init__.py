# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
CI status of a git working copy, as reported by GitHub's combined commit status.

This package contains:
- ref resolution (which name the remote knows a local branch by)
- skip-directive scanning (`[ci skip]` / `[skip ci]` commits)
- aggregation of a report into one display state
- presentation and URL navigation of individual statuses

Fetching and caching live in `common_github.api.commit_status_cached`; the git
layer is `common.GitUtils`.
"""

from .aggregator import (  # noqa: F401
    DisplayState,
    summarize,
)
from .core import CIStatusService  # noqa: F401
from .errors import (  # noqa: F401
    CIStatusError,
    MalformedRemoteBranchError,
    NoCurrentBranchError,
    NoReportableCommitError,
    NoTrackingBranchError,
    NoUsableURLError,
    RefResolutionError,
    RemoteURLError,
)
from .presenter import (  # noqa: F401
    format_entry,
    navigate,
)
from .refs import (  # noqa: F401
    RemoteBranch,
    parse_remote_branch,
    resolve_default_ref,
)
from .skip_directive import most_recent_non_skip_commit  # noqa: F401
from .states import STATUS_STATE_SPECS, StatusStateSpec, state_spec  # noqa: F401

__all__ = [
    "CIStatusError",
    "CIStatusService",
    "DisplayState",
    "MalformedRemoteBranchError",
    "NoCurrentBranchError",
    "NoReportableCommitError",
    "NoTrackingBranchError",
    "NoUsableURLError",
    "RefResolutionError",
    "RemoteBranch",
    "RemoteURLError",
    "STATUS_STATE_SPECS",
    "StatusStateSpec",
    "format_entry",
    "most_recent_non_skip_commit",
    "navigate",
    "parse_remote_branch",
    "resolve_default_ref",
    "state_spec",
]
