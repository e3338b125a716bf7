# src/peerscope/application/use_cases/peer_analysis/generate_peer_analysis.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Use case: Generate the peer analysis of one institution at one period.

Scope:
    * Load a period snapshot (population sizes + every statement, one bulk
      read each) and sort the population once per metric.
    * Select the size-based peer cohort, average the cohort's metrics, rank
      the institution across the whole population, and assemble the
      :class:`PeerAnalysis` aggregate.

This use case performs no writes; the batch use case persists the result.

Layer:
    application
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime

from peerscope.application.services.period_snapshot_cache import PeriodSnapshot
from peerscope.domain.entities.peer_analysis import PeerAnalysis
from peerscope.domain.enums.peer_metric import ALL_PEER_METRICS, PeerMetric
from peerscope.domain.interfaces.repositories.financial_statements_repository import (
    FinancialStatementsRepository,
)
from peerscope.domain.services.metric_extractor import extract_metrics
from peerscope.domain.services.peer_averager import average_metrics
from peerscope.domain.services.peer_selector import DEFAULT_PEER_COUNT, select_peers
from peerscope.domain.services.ranking_engine import build_population_rankings

logger = logging.getLogger(__name__)


async def load_period_snapshot(
    repo: FinancialStatementsRepository,
    period: date,
    metrics: Sequence[PeerMetric] = ALL_PEER_METRICS,
) -> PeriodSnapshot:
    """Read and index the population of one reporting period.

    Args:
        repo: Statement repository bound to an active unit of work.
        period: Reporting period to load.
        metrics: Metrics to pre-rank.

    Returns:
        PeriodSnapshot holding sizes, statements and sorted populations.
    """
    sizes = await repo.get_population_sizes_at_period(period)
    statements = await repo.get_statements_for_period(period)
    snapshot = PeriodSnapshot(
        period=period,
        sizes=sizes,
        statements=statements,
        rankings=build_population_rankings(statements, metrics),
    )
    logger.debug(
        "peer_analysis.period.loaded",
        extra={"extra": {"period": period.isoformat(), "statements": len(statements)}},
    )
    return snapshot


class GeneratePeerAnalysis:
    """Compute one institution's peer analysis from a period snapshot."""

    def __init__(
        self,
        *,
        peer_count: int = DEFAULT_PEER_COUNT,
        metrics: Sequence[PeerMetric] = ALL_PEER_METRICS,
    ) -> None:
        """Initialize the use case.

        Args:
            peer_count: Peers selected on each side of the target (N).
            metrics: Metrics to average and rank.

        Raises:
            ValueError: If ``peer_count`` is not positive or ``metrics`` is empty.
        """
        if peer_count < 1:
            raise ValueError("peer_count must be >= 1")
        if not metrics:
            raise ValueError("metrics must not be empty")
        self._peer_count = peer_count
        self._metrics = tuple(metrics)

    @property
    def metrics(self) -> tuple[PeerMetric, ...]:
        """Return the metrics this use case averages and ranks."""
        return self._metrics

    def __call__(
        self,
        institution_id: str,
        snapshot: PeriodSnapshot,
        *,
        generated_at: datetime,
    ) -> PeerAnalysis:
        """Build the peer analysis for one institution at the snapshot's period.

        Args:
            institution_id: Target institution key.
            snapshot: Population data of the period.
            generated_at: Timestamp recorded on the analysis.

        Returns:
            PeerAnalysis. An empty cohort yields ``None`` averages; rankings
            are still computed against the whole population.
        """
        cohort = select_peers(
            snapshot.sizes,
            institution_id,
            snapshot.size_of(institution_id),
            self._peer_count,
        )
        if cohort.is_empty:
            logger.warning(
                "peer_analysis.period.empty_cohort",
                extra={
                    "extra": {
                        "institution_id": institution_id,
                        "period": snapshot.period.isoformat(),
                    }
                },
            )

        peer_averages = average_metrics(snapshot.statements_for(cohort.peer_ids), self._metrics)

        all_rankings = snapshot.rankings.rank(institution_id)
        rankings = {metric: all_rankings[metric] for metric in self._metrics}

        own = snapshot.statement_for(institution_id)
        institution_metrics = (
            extract_metrics(own, self._metrics)
            if own is not None
            else {metric: None for metric in self._metrics}
        )

        return PeerAnalysis(
            institution_id=institution_id,
            reporting_period=snapshot.period,
            cohort=cohort,
            peer_averages=peer_averages,
            rankings=rankings,
            institution_metrics=institution_metrics,
            generated_at=generated_at,
        )
