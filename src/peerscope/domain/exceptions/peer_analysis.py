# src/peerscope/domain/exceptions/peer_analysis.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""
Peer analysis domain exceptions.

Purpose:
    Provide error types for the peer-analysis batch: per-institution failures,
    persistence failures, and run-level failures.

Layer:
    domain

Notes:
    - A missing metric on a statement is not an error; extractors return
      ``None`` for it.
    - An empty peer cohort is not an error; it is logged and the period is
      still written.
    - Adapters translate driver errors into :class:`PersistenceError`.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from peerscope.domain.exceptions.base import DomainError


class PeerAnalysisError(DomainError):
    """Base class for peer-analysis errors."""

    code = "PEER_ANALYSIS_ERROR"


class PersistenceError(PeerAnalysisError):
    """Raised when the statement store is unreachable or rejects a write."""

    code = "PERSISTENCE_ERROR"


class InstitutionProcessingError(PeerAnalysisError):
    """Raised when computing or persisting one institution's analysis fails.

    Args:
        message: Human-readable error message.
        institution_id: Institution whose unit of work failed.
        reporting_period: Period being processed when the failure occurred,
            if known.
        details: Optional machine-readable diagnostic payload.
    """

    code = "INSTITUTION_PROCESSING_ERROR"

    def __init__(
        self,
        message: str,
        *,
        institution_id: str,
        reporting_period: date | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.institution_id = institution_id
        self.reporting_period = reporting_period


class NoStatementsError(InstitutionProcessingError):
    """Raised when an institution has no statements and the policy counts it as an error."""

    code = "NO_STATEMENTS"


class PopulationUnavailableError(PeerAnalysisError):
    """Raised when the institution population cannot be enumerated (fatal for a run)."""

    code = "POPULATION_UNAVAILABLE"


class RunAlreadyActiveError(PeerAnalysisError):
    """Raised when another peer-analysis run is already in progress."""

    code = "RUN_ALREADY_ACTIVE"


__all__ = [
    "InstitutionProcessingError",
    "NoStatementsError",
    "PeerAnalysisError",
    "PersistenceError",
    "PopulationUnavailableError",
    "RunAlreadyActiveError",
]
