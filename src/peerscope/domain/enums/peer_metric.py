# src/peerscope/domain/enums/peer_metric.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Peer metric enumeration.

Purpose:
    Provide the fixed set of scalar financial metrics tracked for peer
    comparison, together with the ranking direction of each metric.

Layer:
    domain

Notes:
    - Values are the camelCase field names used in persisted documents and
      downstream reporting contracts; they must remain stable.
    - ``EFFICIENCY_RATIO`` is the only metric where a lower value ranks better.
"""

from __future__ import annotations

from enum import Enum


class MetricDirection(str, Enum):
    """Whether a larger or smaller metric value is considered better."""

    HIGHER_IS_BETTER = "HIGHER_IS_BETTER"
    LOWER_IS_BETTER = "LOWER_IS_BETTER"


class PeerMetric(str, Enum):
    """Scalar metrics compared across institutions for a reporting period."""

    TOTAL_ASSETS = "totalAssets"
    TOTAL_LOANS = "totalLoans"
    TOTAL_DEPOSITS = "totalDeposits"
    TOTAL_EQUITY = "totalEquity"
    NET_INCOME = "netIncome"
    NET_INTEREST_INCOME = "netInterestIncome"
    NONINTEREST_INCOME = "noninterestIncome"
    NONINTEREST_EXPENSE = "noninterestExpense"
    ROE = "roe"
    ROA = "roa"
    NIM = "nim"
    EFFICIENCY_RATIO = "efficiencyRatio"
    OPERATING_LEVERAGE = "operatingLeverage"

    @property
    def direction(self) -> MetricDirection:
        """Return the ranking direction for this metric."""
        if self is PeerMetric.EFFICIENCY_RATIO:
            return MetricDirection.LOWER_IS_BETTER
        return MetricDirection.HIGHER_IS_BETTER


#: Default metric set, in persisted document order.
ALL_PEER_METRICS: tuple[PeerMetric, ...] = tuple(PeerMetric)

#: Metric used to measure institution size for cohort selection and ordering.
SIZE_METRIC: PeerMetric = PeerMetric.TOTAL_ASSETS


__all__ = ["ALL_PEER_METRICS", "SIZE_METRIC", "MetricDirection", "PeerMetric"]
