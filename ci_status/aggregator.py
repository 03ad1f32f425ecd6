# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Reduce a StatusReport to one display state (label, style, detail).

The overall state is the remote's own rollup (`report.state`); only the number of
passing entries is computed locally.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional

from common_github.commit_status_types import StatusReport
from common_types import CIStatus

from .presenter import format_entry
from .states import state_spec

NO_CHECKS_MESSAGE = "checks have not yet begun"


@dataclass(frozen=True)
class DisplayState:
    label: str
    style: str
    detail: str


def count_by_state(report: StatusReport) -> Dict[Optional[str], int]:
    """Number of entries per state, e.g. {"success": 2, "pending": 1}."""
    return dict(Counter(s.state for s in report.statuses))


def summarize(report: StatusReport) -> DisplayState:
    """Display state of a report.

    - no entries: spec of the overall state; detail is the report's message, or NO_CHECKS_MESSAGE
    - one entry: that entry alone (its state spec, detail = format_entry(entry)), no fraction
    - more: spec of the overall state; detail "<label> (<passed>/<total>)"
    """
    if report.total_count <= 0 or not report.statuses:
        spec = state_spec(report.state)
        return DisplayState(label=spec.label, style=spec.style, detail=report.message or NO_CHECKS_MESSAGE)

    if report.total_count == 1:
        entry = report.statuses[0]
        spec = state_spec(entry.state)
        return DisplayState(label=spec.label, style=spec.style, detail=format_entry(entry))

    spec = state_spec(report.state)
    passed = sum(1 for s in report.statuses if s.state == CIStatus.SUCCESS.value)
    return DisplayState(
        label=spec.label,
        style=spec.style,
        detail=f"{spec.label} ({passed}/{report.total_count})",
    )
