# src/peerscope/domain/services/peer_averager.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Peer-average computation.

Purpose:
    Compute the arithmetic mean of each tracked metric across a peer cohort's
    statements.

Layer:
    domain

Notes:
    - Only applicable values contribute to a metric's mean; a cohort member
      lacking the metric shifts neither the sum nor the denominator.
    - A metric with no applicable value in the cohort averages to ``None``.
    - ``math.fsum`` keeps the mean independent of statement order.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.enums.peer_metric import PeerMetric
from peerscope.domain.services.metric_extractor import extract_metric


def mean_of_applicable(values: Iterable[float | None]) -> float | None:
    """Return the mean of the non-``None`` values, or ``None`` if there are none."""
    applicable = [v for v in values if v is not None]
    if not applicable:
        return None
    return math.fsum(applicable) / len(applicable)


def average_metrics(
    statements: Sequence[FinancialStatement],
    metrics: Iterable[PeerMetric],
) -> dict[PeerMetric, float | None]:
    """Average each metric across the given cohort statements.

    Args:
        statements: Statements of the cohort members at one period.
        metrics: Metrics to average.

    Returns:
        Mapping of metric to cohort mean (``None`` when no member qualifies).
    """
    return {
        metric: mean_of_applicable(extract_metric(stmt, metric) for stmt in statements)
        for metric in metrics
    }


__all__ = ["average_metrics", "mean_of_applicable"]
