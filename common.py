#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
ci-status utilities.

Shared cache-location policy, logger setup, and the GitPython-backed
version-control layer used by `ci_status/`.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

# GitPython is required - hard error if not installed
try:
    import git  # type: ignore[import-not-found]
except ImportError as e:
    raise ImportError("GitPython is required. Install with: pip install gitpython") from e

# Global logger for the module
_logger = logging.getLogger(__name__)

# Git config key of the per-repository on/off toggle (`git config ci-status.enabled false`).
CONFIG_SECTION = "ci-status"
CONFIG_ENABLED_OPTION = "enabled"


# ======================================================================================
# IMPORTANT: Cache location policy (ci-status)
#
# All *persistent* caches MUST live under:
#   - $CI_STATUS_CACHE_DIR       (explicit override), else
#   - ~/.cache/ci-status         (default)
#
# Do NOT write caches into a repo checkout: it dirties the working tree and
# scatters caches across clones.
# ======================================================================================

def ci_status_cache_dir() -> Path:
    """Return the cache directory for ci-status.

    Resolution order:
    - CI_STATUS_CACHE_DIR (explicit override)
    - ~/.cache/ci-status
    """
    override = os.environ.get("CI_STATUS_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    return Path.home() / ".cache" / "ci-status"


def resolve_cache_path(cache_file: str) -> Path:
    """Resolve a cache file path into the global ci-status cache directory.

    - Absolute paths are used as-is.
    - Relative paths are rooted under `ci_status_cache_dir()`.
    """
    p = Path(cache_file).expanduser()
    if p.is_absolute():
        return p
    return ci_status_cache_dir() / p


class BaseUtils:
    """Base class for utility classes with a common per-class logger"""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

        # Set up logger with class name
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.setLevel(logging.DEBUG if verbose else logging.INFO)

        # Remove any existing handlers
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)

        # Verbose mode shows class/method, simple mode just the message
        class LocationFormatter(logging.Formatter):
            def __init__(self, utils_instance) -> None:
                super().__init__()
                self.utils_instance = utils_instance

            def format(self, record: logging.LogRecord) -> str:
                if self.utils_instance.verbose:
                    location = f"{record.name}.{record.funcName}" if record.funcName != '<module>' else record.name
                    return f"{record.levelname} - [{location}] {record.getMessage()}"
                return record.getMessage()

        console_handler.setFormatter(LocationFormatter(self))
        self.logger.addHandler(console_handler)

        # Prevent propagation to root logger
        self.logger.propagate = False


# Git utilities using GitPython API (NO subprocess calls)
class GitUtils(BaseUtils):
    """Version-control layer for CI status lookups.

    Example:
        git_utils = GitUtils(repo_path="/path/to/repo")
        branch = git_utils.get_current_branch()           # "feature/x"
        push = git_utils.get_push_branch(branch)          # "origin/fx"
        if not git_utils.is_rebase_in_progress():
            ...
    """

    def __init__(self, repo_path: Any, verbose: bool = False):
        """Initialize GitUtils.

        Args:
            repo_path: Path to git repository or any directory inside it (Path object or str)
            verbose: Verbose logging
        """
        super().__init__(verbose)

        self.repo_path = Path(repo_path) if not isinstance(repo_path, Path) else repo_path

        try:
            self.repo = git.Repo(self.repo_path, search_parent_directories=True)
            self.logger.debug(f"Initialized git repo at {self.repo.working_tree_dir}")
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            self.logger.error(f"Failed to initialize git repository at {self.repo_path}: {e}")
            raise

    def get_current_branch(self) -> Optional[str]:
        """Get current branch name.

        Returns:
            Branch name or None if detached HEAD
        """
        if self.repo.head.is_detached:
            return None
        try:
            return self.repo.active_branch.name
        except TypeError as e:
            self.logger.debug(f"No active branch: {e}")
            return None

    def is_local_branch(self, name: str) -> bool:
        return any(h.name == name for h in self.repo.heads)

    def get_push_branch(self, branch: str) -> Optional[str]:
        """Get the remote-tracking branch a local branch pushes to.

        Asks git for `<branch>@{push}` first; when that cannot be resolved (e.g. the
        remote ref was never fetched, or push.default refuses a renamed upstream) the
        configured upstream (branch.<name>.remote / .merge) is used.

        Returns:
            "<remote>/<branch>" as known locally (e.g. "origin/fx"), or None
        """
        try:
            out = self.repo.git.rev_parse("--abbrev-ref", f"{branch}@{{push}}")
            out = str(out or "").strip()
            if out:
                return out
        except git.GitCommandError as e:
            self.logger.debug(f"{branch}@{{push}} not resolvable: {str(e.stderr or '').strip()}")

        head = next((h for h in self.repo.heads if h.name == branch), None)
        if head is None:
            return None
        tracking = head.tracking_branch()
        return tracking.name if tracking is not None else None

    def remote_names(self) -> List[str]:
        return [r.name for r in self.repo.remotes]

    def remote_url(self, name: str) -> Optional[str]:
        """URL of a remote, or None if the remote is not configured."""
        try:
            return self.repo.remote(name).url
        except ValueError:
            return None

    def is_rebase_in_progress(self) -> bool:
        """True while an interactive or apply-style rebase is stopped in this repository.

        `rebase-apply/` is shared with `git am`; the `applying` marker inside it means
        a mailbox is being applied rather than a rebase.
        """
        git_dir = Path(self.repo.git_dir)
        if (git_dir / "rebase-merge").is_dir():
            return True
        apply_dir = git_dir / "rebase-apply"
        return apply_dir.is_dir() and not (apply_dir / "applying").exists()

    def iter_commit_messages(self, rev: str = "HEAD", max_count: Optional[int] = None) -> Iterator[Tuple[str, str]]:
        """Yield (hexsha, message) pairs walking history backwards from `rev`.

        Yields nothing for a repository without commits.
        """
        kwargs = {"max_count": int(max_count)} if max_count else {}
        try:
            for commit in self.repo.iter_commits(rev, **kwargs):
                yield commit.hexsha, str(commit.message or "")
        except (ValueError, git.GitCommandError) as e:
            self.logger.debug(f"No history for {rev}: {e}")

    def rev_parse(self, rev: str) -> Optional[str]:
        """Resolve any commit-ish (branch, tag, short SHA, HEAD~2) to a full commit SHA."""
        try:
            return self.repo.commit(rev).hexsha
        except (git.BadName, git.BadObject, ValueError) as e:
            self.logger.debug(f"Cannot resolve {rev!r}: {e}")
            return None

    def get_config_bool(self, section: str, option: str, default: bool) -> bool:
        """Read a boolean from git config (all levels); `default` when unset."""
        reader = self.repo.config_reader()
        try:
            value = reader.get_value(section, option)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return bool(default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "yes", "on", "1")

    def set_config_bool(self, section: str, option: str, value: bool) -> None:
        """Write a boolean to the repository-level git config."""
        with self.repo.config_writer() as writer:
            writer.set_value(section, option, "true" if value else "false")
        self.logger.debug(f"git config {section}.{option}={'true' if value else 'false'}")
