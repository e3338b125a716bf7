# src/peerscope/infrastructure/observability/metrics_peer_analysis.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Peer-analysis batch metrics.

Purpose:
    Provide Prometheus metrics for the peer-analysis batch:
      * Institution outcomes (completed / failed / skipped).
      * Periods written, split by whether a peer cohort was found.
      * Per-institution and per-run latency histograms.

Design:
    - Accessor functions return lazily-created singletons so that repeated
      imports and multiple runs in one process never double-register.
    - Histograms use explicit buckets sized for batch work (seconds to hours).
    - The batch is a short-lived process with nothing to scrape, so the
      registry is pushed to a Pushgateway when the run ends.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, push_to_gateway

from peerscope.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

_INSTITUTION_BUCKETS: Final[tuple[float, ...]] = (
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
)

_RUN_BUCKETS: Final[tuple[float, ...]] = (
    1.0,
    10.0,
    60.0,
    300.0,
    900.0,
    1800.0,
    3600.0,
    7200.0,
    14400.0,
)

_institutions_total: Counter | None = None
_periods_total: Counter | None = None
_institution_seconds: Histogram | None = None
_run_seconds: Histogram | None = None


def get_peer_analysis_institutions_total() -> Counter:
    """Return (and lazily create) the institution outcome counter."""
    global _institutions_total
    if _institutions_total is None:
        _institutions_total = Counter(
            "peer_analysis_institutions_total",
            "Institutions processed by the peer-analysis batch, by outcome.",
            ["outcome"],
        )
    return _institutions_total


def get_peer_analysis_periods_total() -> Counter:
    """Return (and lazily create) the written-period counter."""
    global _periods_total
    if _periods_total is None:
        _periods_total = Counter(
            "peer_analysis_periods_total",
            "Institution-periods written by the peer-analysis batch.",
            ["cohort"],
        )
    return _periods_total


def get_peer_analysis_institution_seconds() -> Histogram:
    """Return (and lazily create) the per-institution latency histogram."""
    global _institution_seconds
    if _institution_seconds is None:
        _institution_seconds = Histogram(
            "peer_analysis_institution_seconds",
            "Wall time to compute and persist one institution's peer analysis.",
            ["outcome"],
            buckets=_INSTITUTION_BUCKETS,
        )
    return _institution_seconds


def get_peer_analysis_run_seconds() -> Histogram:
    """Return (and lazily create) the per-run latency histogram."""
    global _run_seconds
    if _run_seconds is None:
        _run_seconds = Histogram(
            "peer_analysis_run_seconds",
            "Wall time of a full peer-analysis run.",
            buckets=_RUN_BUCKETS,
        )
    return _run_seconds


class PrometheusPeerAnalysisMetrics:
    """Prometheus binding of the application's peer-analysis metrics port."""

    def observe_institution(self, outcome: str, seconds: float) -> None:
        get_peer_analysis_institutions_total().labels(outcome=outcome).inc()
        get_peer_analysis_institution_seconds().labels(outcome=outcome).observe(seconds)

    def observe_period(self, *, has_cohort: bool) -> None:
        cohort = "found" if has_cohort else "empty"
        get_peer_analysis_periods_total().labels(cohort=cohort).inc()

    def observe_run(self, seconds: float) -> None:
        get_peer_analysis_run_seconds().observe(seconds)


def push_peer_analysis_metrics(
    gateway_url: str,
    *,
    job: str = "peerscope_peer_analysis",
    registry: CollectorRegistry = REGISTRY,
) -> bool:
    """Push the registry to a Prometheus Pushgateway.

    The push replaces every series previously pushed under ``job``. An
    unreachable gateway is logged and reported, never raised, so that
    metrics export cannot fail a run whose results are already stored.

    Args:
        gateway_url: Pushgateway address (``host:port`` or URL).
        job: Job label of the pushed group.
        registry: Registry to push.

    Returns:
        True if the gateway accepted the push.
    """
    try:
        push_to_gateway(gateway_url, job=job, registry=registry)
    except OSError as exc:
        logger.warning(
            "peer_analysis.metrics.push_failed",
            extra={"extra": {"gateway": gateway_url, "job": job, "error": str(exc)}},
        )
        return False
    logger.info(
        "peer_analysis.metrics.pushed",
        extra={"extra": {"gateway": gateway_url, "job": job}},
    )
    return True


__all__ = [
    "PrometheusPeerAnalysisMetrics",
    "push_peer_analysis_metrics",
    "get_peer_analysis_institution_seconds",
    "get_peer_analysis_institutions_total",
    "get_peer_analysis_periods_total",
    "get_peer_analysis_run_seconds",
]
