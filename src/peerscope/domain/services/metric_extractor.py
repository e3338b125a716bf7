# src/peerscope/domain/services/metric_extractor.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Metric extraction from statement documents.

Purpose:
    Map a :class:`FinancialStatement` to the fixed set of scalar
    :class:`PeerMetric` values. Each metric is resolved by an independent,
    pure extractor registered in :data:`METRIC_EXTRACTORS`.

Layer:
    domain

Notes:
    - Extraction never raises. A missing nested key, a non-mapping
      intermediate node, a non-numeric leaf, a boolean, or a non-finite
      number all yield ``None`` ("not applicable").
    - Zero is a real value and is returned as ``0.0``.
    - Adding a metric only requires registering a new extractor; ranking and
      averaging consume the registry through :func:`extract_metric`.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from typing import Any

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.enums.peer_metric import PeerMetric

MetricExtractor = Callable[[FinancialStatement], float | None]


def coerce_metric_value(raw: Any) -> float | None:
    """Coerce a raw document leaf into a finite float.

    Args:
        raw: Leaf value read from a statement document.

    Returns:
        The value as ``float``, or ``None`` when it is absent, non-numeric,
        boolean, or not finite.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float, Decimal)):
        return None
    try:
        value = float(raw)
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _document_path(section: str, *keys: str) -> MetricExtractor:
    """Build an extractor that walks ``section.keys[0].keys[1]...``."""

    def _extract(statement: FinancialStatement) -> float | None:
        node: Any = statement.section(section)
        for key in keys:
            if not isinstance(node, Mapping):
                return None
            node = node.get(key)
        return coerce_metric_value(node)

    _extract.__name__ = f"extract_{section}_{'_'.join(keys)}"
    return _extract


METRIC_EXTRACTORS: Mapping[PeerMetric, MetricExtractor] = {
    PeerMetric.TOTAL_ASSETS: _document_path("balanceSheet", "assets", "totalAssets"),
    PeerMetric.TOTAL_LOANS: _document_path(
        "balanceSheet", "assets", "earningAssets", "loansAndLeases", "net"
    ),
    PeerMetric.TOTAL_DEPOSITS: _document_path("balanceSheet", "liabilities", "deposits", "total"),
    PeerMetric.TOTAL_EQUITY: _document_path("balanceSheet", "equity", "totalEquity"),
    PeerMetric.NET_INCOME: _document_path("incomeStatement", "netIncome"),
    PeerMetric.NET_INTEREST_INCOME: _document_path("incomeStatement", "netInterestIncome"),
    PeerMetric.NONINTEREST_INCOME: _document_path("incomeStatement", "noninterestIncome", "total"),
    PeerMetric.NONINTEREST_EXPENSE: _document_path(
        "incomeStatement", "noninterestExpense", "total"
    ),
    PeerMetric.ROE: _document_path("ratios", "roe"),
    PeerMetric.ROA: _document_path("ratios", "roa"),
    PeerMetric.NIM: _document_path("ratios", "netInterestMargin"),
    PeerMetric.EFFICIENCY_RATIO: _document_path("ratios", "efficiencyRatio"),
    PeerMetric.OPERATING_LEVERAGE: _document_path("ratios", "operatingLeverage"),
}


def extract_metric(statement: FinancialStatement, metric: PeerMetric) -> float | None:
    """Return one metric value for a statement, or ``None`` if not applicable.

    Args:
        statement: Statement snapshot.
        metric: Metric to extract.

    Returns:
        Finite float value, or ``None``.
    """
    extractor = METRIC_EXTRACTORS.get(metric)
    if extractor is None:
        return None
    return extractor(statement)


def extract_metrics(
    statement: FinancialStatement,
    metrics: Iterable[PeerMetric],
) -> dict[PeerMetric, float | None]:
    """Return the values of several metrics for a statement, in input order."""
    return {metric: extract_metric(statement, metric) for metric in metrics}


__all__ = [
    "METRIC_EXTRACTORS",
    "MetricExtractor",
    "coerce_metric_value",
    "extract_metric",
    "extract_metrics",
]
