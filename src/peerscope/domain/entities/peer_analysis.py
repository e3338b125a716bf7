# src/peerscope/domain/entities/peer_analysis.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Peer analysis entities.

Purpose:
    Represent the derived results of a peer-analysis computation for one
    institution at one reporting period: the size-based peer cohort, peer
    averages, population rankings, and the persisted aggregate.

Layer:
    domain

Notes:
    - :class:`PeerAnalysis` is fully recomputed on every run and overwrites
      the previous document; it is never merged with stale fields.
    - ``to_document()`` produces the JSON-serializable shape consumed by the
      reporting collaborators. Metric keys use the stable camelCase names.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from peerscope.domain.enums.peer_metric import PeerMetric

#: Mean of the cohort's applicable values per metric (``None`` when no member qualifies).
PeerAverages = Mapping[PeerMetric, float | None]


@dataclass(frozen=True)
class PeerCohort:
    """Size-based peer cohort for a target institution.

    Attributes:
        larger_ids: Closest strictly-larger institutions, closest first.
        smaller_ids: Closest strictly-smaller institutions, closest first.
    """

    larger_ids: tuple[str, ...] = ()
    smaller_ids: tuple[str, ...] = ()

    @property
    def peer_ids(self) -> tuple[str, ...]:
        """Return all cohort members, larger peers first."""
        return self.larger_ids + self.smaller_ids

    @property
    def count(self) -> int:
        """Return the cohort size."""
        return len(self.larger_ids) + len(self.smaller_ids)

    @property
    def is_empty(self) -> bool:
        """Return True when no qualifying peers were found."""
        return self.count == 0

    def to_document(self) -> dict[str, Any]:
        """Return the persisted cohort summary."""
        return {
            "count": self.count,
            "largerCount": len(self.larger_ids),
            "smallerCount": len(self.smaller_ids),
            "largerIds": list(self.larger_ids),
            "smallerIds": list(self.smaller_ids),
            "peerIds": list(self.peer_ids),
        }


@dataclass(frozen=True)
class MetricRanking:
    """Rank of a target institution across the whole population for one metric.

    Attributes:
        rank: 1-based position in the population sorted best-first, or ``0``
            when the target has no applicable value.
        total: Number of population members with an applicable value.
        percentile: ``round((total - rank + 1) / total * 100)``, or ``None``
            when the target is unranked or the population is empty.
        value: Target institution's own value, or ``None``.
    """

    rank: int
    total: int
    percentile: int | None
    value: float | None

    @property
    def is_ranked(self) -> bool:
        """Return True when the target participates in the ordering."""
        return self.rank > 0

    def to_document(self) -> dict[str, Any]:
        """Return the persisted ranking entry."""
        return {
            "rank": self.rank,
            "total": self.total,
            "percentile": self.percentile,
            "value": self.value,
        }


@dataclass(frozen=True)
class PeerAnalysis:
    """Persisted peer-analysis aggregate for one (institution, reporting period).

    Attributes:
        institution_id: Target institution key.
        reporting_period: Reporting period the analysis describes.
        cohort: Selected peer cohort.
        peer_averages: Cohort mean per metric.
        rankings: Population ranking per metric.
        institution_metrics: Target institution's own value per metric.
        generated_at: UTC timestamp of the run that produced this analysis.
    """

    institution_id: str
    reporting_period: date
    cohort: PeerCohort
    peer_averages: PeerAverages
    rankings: Mapping[PeerMetric, MetricRanking]
    institution_metrics: Mapping[PeerMetric, float | None]
    generated_at: datetime

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-serializable document written to the statement store."""
        return {
            "peers": self.cohort.to_document(),
            "peerAverages": {m.value: v for m, v in self.peer_averages.items()},
            "rankings": {m.value: r.to_document() for m, r in self.rankings.items()},
            "institutionMetrics": {m.value: v for m, v in self.institution_metrics.items()},
            "generatedAt": self.generated_at.isoformat(),
        }


__all__ = ["MetricRanking", "PeerAnalysis", "PeerAverages", "PeerCohort"]
