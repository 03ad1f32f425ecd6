# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub API error types.

These are intentionally lightweight so cached API modules can catch specific
error classes (e.g. 404 Not Found) without creating import cycles.
"""

from __future__ import annotations


class GitHubAPIError(Exception):
    def __init__(self, *, status_code: int, endpoint: str, message: str):
        super().__init__(message)
        self.status_code = int(status_code)
        self.endpoint = str(endpoint or "")


class GitHubAuthError(GitHubAPIError):
    pass


class GitHubForbiddenError(GitHubAPIError):
    pass


class GitHubRateLimitError(GitHubForbiddenError):
    pass


class GitHubNotFoundError(GitHubAPIError):
    pass


class GitHubRequestError(GitHubAPIError):
    pass


class GitHubOfflineError(GitHubAPIError):
    """Raised instead of touching the network while cache-only mode is on."""
