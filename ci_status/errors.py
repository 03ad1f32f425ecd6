# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""User-facing error types for ci_status.

Transport errors are `common_github.exceptions.GitHubAPIError` subclasses and are not
wrapped here; a ref unknown to the remote is not an error at all (see StatusReport.not_found()).
"""

from __future__ import annotations


class CIStatusError(Exception):
    """Base class for errors that are reported to the user instead of crashing."""


class RefResolutionError(CIStatusError):
    pass


class NoCurrentBranchError(RefResolutionError):
    def __init__(self, message: str = "No branch is checked out (detached HEAD)"):
        super().__init__(message)


class NoTrackingBranchError(RefResolutionError):
    def __init__(self, branch: str):
        super().__init__(f"Branch {branch!r} has no push or upstream branch configured")
        self.branch = branch


class MalformedRemoteBranchError(RefResolutionError):
    def __init__(self, name: str):
        super().__init__(f"Not a <remote>/<branch> name: {name!r}")
        self.name = name


class RemoteURLError(RefResolutionError):
    def __init__(self, url: str):
        super().__init__(f"Cannot determine GitHub owner/repo from remote URL {url!r}")
        self.url = url


class NoReportableCommitError(RefResolutionError):
    def __init__(self, message: str = "No commit to report CI status for (every commit is marked to skip CI)"):
        super().__init__(message)


class NoUsableURLError(CIStatusError):
    pass
