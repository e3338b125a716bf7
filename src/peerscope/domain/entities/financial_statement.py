# src/peerscope/domain/entities/financial_statement.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Financial statement snapshot entity.

Purpose:
    Represent one institution's financial statement at one reporting period.
    The schedules are schema-flexible nested documents owned by the ingestion
    pipeline; this package only reads scalar projections from them.

Layer:
    domain

Notes:
    The nested mappings are treated as read-only. Metric extraction tolerates
    any missing key or non-numeric leaf.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(frozen=True)
class FinancialStatement:
    """Statement snapshot for one (institution, reporting period).

    Attributes:
        institution_id: Owning institution key.
        reporting_period: Reporting period end date (e.g. quarter end).
        balance_sheet: Nested balance-sheet schedule.
        income_statement: Nested income-statement schedule.
        ratios: Flat or nested ratio schedule.
    """

    institution_id: str
    reporting_period: date
    balance_sheet: Mapping[str, Any] = field(default_factory=dict)
    income_statement: Mapping[str, Any] = field(default_factory=dict)
    ratios: Mapping[str, Any] = field(default_factory=dict)

    def section(self, name: str) -> Mapping[str, Any]:
        """Return a top-level schedule by its document name.

        Args:
            name: One of ``balanceSheet``, ``incomeStatement`` or ``ratios``.

        Returns:
            The schedule mapping, or an empty mapping for unknown names.
        """
        sections: dict[str, Mapping[str, Any]] = {
            "balanceSheet": self.balance_sheet,
            "incomeStatement": self.income_statement,
            "ratios": self.ratios,
        }
        return sections.get(name) or {}
