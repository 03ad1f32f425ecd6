# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for ci_status/skip_directive.py.

Run from the repository root:
    pytest ci_status/test_skip_directive.py -v
"""

import sys
from pathlib import Path

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from ci_status.skip_directive import (
    first_non_skip_commit,
    is_skip_message,
    most_recent_non_skip_commit,
)


class _History:
    def __init__(self, commits):
        self.commits = commits
        self.revs = []

    def iter_commit_messages(self, rev="HEAD", max_count=None):
        self.revs.append(rev)
        yield from self.commits


def test_skip_markers():
    assert is_skip_message("Fix typo [ci skip]")
    assert is_skip_message("[skip ci] docs only\n\nbody")
    assert not is_skip_message("Fix the build")
    assert not is_skip_message("")


def test_skip_markers_are_case_sensitive():
    assert not is_skip_message("docs [CI SKIP]")
    assert not is_skip_message("docs [Skip CI]")


def test_first_non_skip_commit_walks_past_skipped_commits():
    commits = [
        ("ccc", "Fix typo [ci skip]"),
        ("bbb", "Add feature"),
        ("aaa", "Initial commit"),
    ]
    assert first_non_skip_commit(commits) == "bbb"


def test_first_non_skip_commit_all_skipped():
    assert first_non_skip_commit([("bbb", "[skip ci] a"), ("aaa", "b [ci skip]")]) is None


def test_first_non_skip_commit_empty_history():
    assert first_non_skip_commit([]) is None


def test_most_recent_non_skip_commit_reads_from_head():
    history = _History([("ccc", "Fix typo [ci skip]"), ("bbb", "Add feature")])

    assert most_recent_non_skip_commit(history) == "bbb"
    assert history.revs == ["HEAD"]


def test_most_recent_non_skip_commit_stops_at_first_match():
    def commits():
        yield "bbb", "Add feature"
        raise AssertionError("history walked past the first buildable commit")

    history = _History(commits())

    assert most_recent_non_skip_commit(history) == "bbb"
