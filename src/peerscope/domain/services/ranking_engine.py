# src/peerscope/domain/services/ranking_engine.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Population ranking engine.

Purpose:
    Rank an institution against the entire population reporting at a period,
    for every tracked metric, from one bulk read of the period's statements.

Layer:
    domain

Notes:
    - Each metric's population is extracted and sorted once
      (:func:`build_population_rankings`); ranking any number of targets
      against it is then a dictionary lookup. Callers that process many
      institutions at the same period should reuse the built object.
    - Direction is metric-specific: descending for higher-is-better metrics,
      ascending for ``efficiencyRatio``.
    - Not-applicable values are excluded from the ordering and the total.
    - Ties are broken by ascending institution id, so equal values receive
      distinct, reproducible ranks.
    - Percentile rounds half up: ``floor((total - rank + 1) / total * 100 + 0.5)``,
      computed in integer arithmetic.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.entities.peer_analysis import MetricRanking
from peerscope.domain.enums.peer_metric import ALL_PEER_METRICS, MetricDirection, PeerMetric
from peerscope.domain.services.metric_extractor import extract_metric


def compute_percentile(rank: int, total: int) -> int | None:
    """Return the 0-100 percentile for a 1-based rank, or ``None`` if undefined.

    Args:
        rank: 1-based rank (``0`` means unranked).
        total: Number of ranked population members.

    Returns:
        ``round((total - rank + 1) / total * 100)`` rounded half up, or
        ``None`` when ``total`` is zero or the rank is outside ``1..total``.
    """
    if total <= 0 or rank < 1 or rank > total:
        return None
    numerator = (total - rank + 1) * 100
    return (2 * numerator + total) // (2 * total)


@dataclass(frozen=True)
class MetricPopulation:
    """Sorted population for one metric at one period.

    Attributes:
        metric: Metric the population is ordered by.
        ordered: ``(institution_id, value)`` pairs, best first.
        positions: Institution id to 1-based rank.
    """

    metric: PeerMetric
    ordered: tuple[tuple[str, float], ...]
    positions: Mapping[str, int] = field(repr=False)

    @property
    def total(self) -> int:
        """Return the number of members with an applicable value."""
        return len(self.ordered)

    def rank_of(self, institution_id: str) -> MetricRanking:
        """Return the ranking entry of one institution.

        Args:
            institution_id: Target institution key.

        Returns:
            MetricRanking; rank ``0`` with ``None`` percentile and value when
            the institution has no applicable value.
        """
        rank = self.positions.get(institution_id, 0)
        value = self.ordered[rank - 1][1] if rank else None
        return MetricRanking(
            rank=rank,
            total=self.total,
            percentile=compute_percentile(rank, self.total),
            value=value,
        )


def sort_population(
    metric: PeerMetric,
    values: Iterable[tuple[str, float | None]],
) -> MetricPopulation:
    """Filter and order ``(institution_id, value)`` pairs for one metric.

    Args:
        metric: Metric whose direction governs the order.
        values: Raw pairs; ``None`` values are dropped. Repeated ids keep
            their first occurrence.

    Returns:
        MetricPopulation ordered best-first.
    """
    seen: set[str] = set()
    qualifying: list[tuple[str, float]] = []
    for institution_id, value in values:
        if value is None or institution_id in seen:
            continue
        seen.add(institution_id)
        qualifying.append((institution_id, value))

    if metric.direction is MetricDirection.LOWER_IS_BETTER:
        qualifying.sort(key=lambda item: (item[1], item[0]))
    else:
        qualifying.sort(key=lambda item: (-item[1], item[0]))

    positions = {institution_id: idx for idx, (institution_id, _) in enumerate(qualifying, 1)}
    return MetricPopulation(metric=metric, ordered=tuple(qualifying), positions=positions)


@dataclass(frozen=True)
class PopulationRankings:
    """Sorted populations for a set of metrics at one period."""

    populations: Mapping[PeerMetric, MetricPopulation]

    def rank(self, institution_id: str) -> dict[PeerMetric, MetricRanking]:
        """Return the ranking entry of one institution for every metric."""
        return {
            metric: population.rank_of(institution_id)
            for metric, population in self.populations.items()
        }


def build_population_rankings(
    statements: Sequence[FinancialStatement],
    metrics: Iterable[PeerMetric] = ALL_PEER_METRICS,
) -> PopulationRankings:
    """Sort the period's population once per metric.

    Args:
        statements: Every statement reporting at the period.
        metrics: Metrics to rank.

    Returns:
        PopulationRankings reusable for any target at the same period.
    """
    populations = {
        metric: sort_population(
            metric,
            ((stmt.institution_id, extract_metric(stmt, metric)) for stmt in statements),
        )
        for metric in metrics
    }
    return PopulationRankings(populations=populations)


class RankingEngine:
    """Rank institutions against the full population of a reporting period."""

    def rank_all(
        self,
        target_id: str,
        statements: Sequence[FinancialStatement],
        metrics: Iterable[PeerMetric] = ALL_PEER_METRICS,
    ) -> dict[PeerMetric, MetricRanking]:
        """Rank one institution for every metric.

        Args:
            target_id: Target institution key.
            statements: Every statement reporting at the period (one bulk read).
            metrics: Metrics to rank.

        Returns:
            Mapping of metric to the target's ranking entry.
        """
        return build_population_rankings(statements, metrics).rank(target_id)


__all__ = [
    "MetricPopulation",
    "PopulationRankings",
    "RankingEngine",
    "build_population_rankings",
    "compute_percentile",
    "sort_population",
]
