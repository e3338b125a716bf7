# src/peerscope/domain/enums/empty_institution_policy.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Policy for institutions without any qualifying reporting period.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class EmptyInstitutionPolicy(str, Enum):
    """How a run accounts for institutions that have no statements to analyse.

    Attributes:
        SKIP: Log a warning and count the institution as skipped.
        ERROR: Count the institution as a failed unit of work.
    """

    SKIP = "skip"
    ERROR = "error"
