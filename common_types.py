#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums/types that must be used by both:
- `common_github/` (API/data layer)
- `ci_status/` (aggregation + presentation)

This module MUST NOT import `common.py`, `common_github` or `ci_status` to avoid cycles.
"""

from __future__ import annotations

from enum import Enum


class CIStatus(str, Enum):
    """State vocabulary of the GitHub combined commit status API."""

    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    PENDING = "pending"
