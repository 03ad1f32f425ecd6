# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Types for the combined commit status of a ref.

This module exists to avoid circular imports between `common_github/api/commit_status_cached.py`
(which produces these values) and `ci_status/` (which aggregates and presents them).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from common_types import CIStatus

NOT_FOUND_MESSAGE = "ref not found on remote"


def _opt_str(v: Any) -> Optional[str]:
    s = str(v).strip() if v is not None else ""
    return s or None


@dataclass(frozen=True)
class StatusEntry:
    """One CI service's reported outcome for a ref (one row of the combined status)."""

    state: Optional[str]
    context: str = ""
    description: Optional[str] = None
    target_url: Optional[str] = None

    @classmethod
    def from_api_dict(cls, d: Dict[str, Any]) -> "StatusEntry":
        """Build from one element of the API's `statuses` list.

        Example input:
          {"state": "success", "context": "ci/circleci", "description": "All tests passed",
           "target_url": "https://circleci.com/gh/owner/repo/123", ...}
        """
        return cls(
            state=_opt_str(d.get("state")),
            context=str(d.get("context") or ""),
            description=_opt_str(d.get("description")),
            target_url=_opt_str(d.get("target_url")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "context": self.context,
            "description": self.description,
            "target_url": self.target_url,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StatusEntry":
        return cls(
            state=d.get("state"),
            context=str(d.get("context") or ""),
            description=d.get("description"),
            target_url=d.get("target_url"),
        )


@dataclass(frozen=True)
class StatusReport:
    """Combined status of one ref.

    `total_count == len(statuses)` for every report built from an API payload. The only
    exception is the synthetic not-found report (`total_count == 0`, `state == "error"`,
    `message == NOT_FOUND_MESSAGE`).
    """

    total_count: int
    state: Optional[str]
    statuses: Tuple[StatusEntry, ...] = ()
    message: Optional[str] = None
    sha: Optional[str] = None

    @classmethod
    def not_found(cls) -> "StatusReport":
        return cls(total_count=0, state=CIStatus.ERROR.value, statuses=(), message=NOT_FOUND_MESSAGE)

    @property
    def is_not_found(self) -> bool:
        return self.total_count == 0 and self.message == NOT_FOUND_MESSAGE

    @classmethod
    def from_api_dict(cls, d: Dict[str, Any]) -> "StatusReport":
        """Build from `GET /repos/{owner}/{repo}/commits/{ref}/status`.

        Example input:
          {"state": "pending", "sha": "6dcb09b5...", "total_count": 2,
           "statuses": [{"state": "success", "context": "ci/build", ...},
                        {"state": "pending", "context": "ci/test", ...}]}
        """
        raw = d.get("statuses") if isinstance(d, dict) else None
        statuses = tuple(StatusEntry.from_api_dict(s) for s in (raw or []) if isinstance(s, dict))
        return cls(
            total_count=len(statuses),
            state=_opt_str(d.get("state")),
            statuses=statuses,
            sha=_opt_str(d.get("sha")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_count": int(self.total_count),
            "state": self.state,
            "statuses": [s.to_dict() for s in self.statuses],
            "message": self.message,
            "sha": self.sha,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StatusReport":
        statuses = tuple(StatusEntry.from_dict(s) for s in (d.get("statuses") or []) if isinstance(s, dict))
        return cls(
            total_count=int(d.get("total_count") or 0),
            state=d.get("state"),
            statuses=statuses,
            message=d.get("message"),
            sha=d.get("sha"),
        )
