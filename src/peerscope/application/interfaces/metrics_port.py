# src/peerscope/application/interfaces/metrics_port.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Application Interface: Peer-analysis metrics port.

Synopsis:
    Minimal observation hooks the batch use case calls. Infrastructure binds
    them to Prometheus; the default implementation discards observations.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol


class PeerAnalysisMetricsPort(Protocol):
    """Observation hooks for the peer-analysis batch."""

    def observe_institution(self, outcome: str, seconds: float) -> None:
        """Record one institution's outcome (completed/failed/skipped) and latency."""

    def observe_period(self, *, has_cohort: bool) -> None:
        """Record one institution-period written."""

    def observe_run(self, seconds: float) -> None:
        """Record the wall time of a finished run."""


class NullPeerAnalysisMetrics:
    """Metrics port that discards every observation."""

    def observe_institution(self, outcome: str, seconds: float) -> None:
        return None

    def observe_period(self, *, has_cohort: bool) -> None:
        return None

    def observe_run(self, seconds: float) -> None:
        return None
