# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Display label + style tag per status state.

The table is process-wide constant configuration. Lookups never fail: any state
outside the table resolves to UNKNOWN_SPEC.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from common_types import CIStatus


@dataclass(frozen=True)
class StatusStateSpec:
    label: str
    style: str


UNKNOWN_SPEC = StatusStateSpec(label="Unknown", style="ci-status-unknown")

STATUS_STATE_SPECS: Mapping[Optional[str], StatusStateSpec] = MappingProxyType({
    None: StatusStateSpec(label="None", style="ci-status-none"),
    CIStatus.ERROR.value: StatusStateSpec(label="Error", style="ci-status-error"),
    CIStatus.FAILURE.value: StatusStateSpec(label="Failure", style="ci-status-failure"),
    CIStatus.PENDING.value: StatusStateSpec(label="Pending", style="ci-status-pending"),
    CIStatus.SUCCESS.value: StatusStateSpec(label="Success", style="ci-status-success"),
})


def state_spec(state: Optional[str]) -> StatusStateSpec:
    """Spec for `state`; None means "no state reported", anything unrecognized is UNKNOWN_SPEC."""
    return STATUS_STATE_SPECS.get(state, UNKNOWN_SPEC)


def is_known_state(state: Optional[str]) -> bool:
    return state in STATUS_STATE_SPECS
