# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Text + URL presentation of individual status entries."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Union

from common_github.commit_status_types import StatusEntry, StatusReport

from .errors import NoUsableURLError
from .states import is_known_state, state_spec

# choose(labels) -> picked label, or None when the user cancels
Chooser = Callable[[List[str]], Optional[str]]
StatusGetter = Callable[[str], Optional[StatusReport]]


def entry_label(entry: StatusEntry) -> str:
    """Table label for the entry's state; the raw state string when the table has none."""
    if is_known_state(entry.state):
        return state_spec(entry.state).label
    return str(entry.state)


def format_entry(entry: StatusEntry) -> str:
    """Label plus description, e.g. "Success All tests passed"; just the label without a description."""
    label = entry_label(entry)
    if entry.description:
        return f"{label} {entry.description}"
    return label


def choice_label(entry: StatusEntry) -> str:
    return f"({entry_label(entry)}) {entry.context}: {entry.description or ''}".rstrip()


def choice_options(entries: Sequence[StatusEntry]) -> Dict[str, StatusEntry]:
    """Choice label -> entry, in report order; repeated labels get a " <2>", " <3>"... suffix."""
    options: Dict[str, StatusEntry] = {}
    for entry in entries:
        label = choice_label(entry)
        n = 1
        unique = label
        while unique in options:
            n += 1
            unique = f"{label} <{n}>"
        options[unique] = entry
    return options


def format_report_lines(report: StatusReport) -> List[str]:
    """One "<context>  <formatted entry>" line per entry."""
    width = max((len(e.context) for e in report.statuses), default=0)
    return [f"{e.context.ljust(width)}  {format_entry(e)}" for e in report.statuses]


def is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def _entry_url(entry: StatusEntry) -> str:
    url = str(entry.target_url or "").strip()
    if not url:
        raise NoUsableURLError(f"No URL for status {entry.context or entry_label(entry)!r}")
    return url


def navigate(
    value: Union[str, StatusEntry],
    *,
    get_status: StatusGetter,
    choose: Chooser,
    peek_status: Optional[StatusGetter] = None,
) -> Optional[str]:
    """URL to open for a rendered value or a ref.

    A value already bound to a URL (a StatusEntry, or an http(s) URL) is used as is.
    Anything else is a ref: its report is fetched (or, when no fetch is possible, taken
    from `peek_status()`); a single entry gives its target_url, several entries are
    offered to `choose()` by choice_label().

    Returns:
        The URL, or None when the user cancelled the choice.

    Raises:
        NoUsableURLError: no report, no entries, or the chosen entry has no URL
    """
    if isinstance(value, StatusEntry):
        return _entry_url(value)

    ref = str(value or "").strip()
    if is_url(ref):
        return ref

    report = get_status(ref)
    if report is None and peek_status is not None:
        report = peek_status(ref)
    if report is None:
        raise NoUsableURLError(f"No CI status available for {ref}")
    if not report.statuses:
        detail = f" ({report.message})" if report.message else ""
        raise NoUsableURLError(f"No CI statuses for {ref}{detail}")

    if len(report.statuses) == 1:
        return _entry_url(report.statuses[0])

    options = choice_options(report.statuses)
    picked = choose(list(options))
    if picked is None:
        return None
    if picked not in options:
        raise NoUsableURLError(f"Unknown status choice {picked!r}")
    return _entry_url(options[picked])
