# src/peerscope/domain/interfaces/repositories/financial_statements_repository.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""
Financial statements repository interface.

Purpose:
    Define the logical read/write operations the peer-analysis job requires
    from the statement store, independent of any query language.

Layer:
    domain

Notes:
    Implementations live in the adapters layer (e.g. SQLAlchemy repositories)
    and must translate driver errors into PersistenceError. Repositories
    never commit; the unit of work owns transactions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any, Protocol

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.entities.institution import InstitutionSize


class FinancialStatementsRepository(Protocol):
    """Protocol for the statement store consumed by peer analysis."""

    async def list_institution_ids_with_statements(self) -> Sequence[str]:
        """Return the distinct ids of institutions that have at least one statement.

        Returns:
            Institution ids in ascending order.

        Raises:
            PersistenceError: If the store cannot be queried.
        """

    async def get_latest_size_metric(self, institution_id: str) -> float | None:
        """Return the size metric of the institution's most recent statement.

        Args:
            institution_id: Institution key.

        Returns:
            Total assets at the latest reporting period, or ``None``.
        """

    async def get_latest_size_metrics(
        self,
        institution_ids: Sequence[str],
    ) -> Mapping[str, float | None]:
        """Bulk form of :meth:`get_latest_size_metric`.

        Args:
            institution_ids: Institution keys.

        Returns:
            Mapping of id to latest size (``None`` when not applicable).
        """

    async def list_periods_for_institution(self, institution_id: str) -> Sequence[date]:
        """Return the reporting periods of an institution, oldest first."""

    async def get_population_sizes_at_period(self, period: date) -> Sequence[InstitutionSize]:
        """Return ``(institution_id, size)`` for every statement at a period.

        Returns:
            Sizes ordered by institution id.
        """

    async def get_statements_for_period(self, period: date) -> Sequence[FinancialStatement]:
        """Return every statement at a period (bulk read).

        Returns:
            Statements ordered by institution id.
        """

    async def get_institution_names(self, institution_ids: Sequence[str]) -> Mapping[str, str]:
        """Return display names for the given institutions (missing ids omitted)."""

    async def update_peer_analysis(
        self,
        institution_id: str,
        period: date,
        peer_analysis: Mapping[str, Any],
    ) -> None:
        """Overwrite the peer-analysis document of one statement.

        Args:
            institution_id: Institution key.
            period: Reporting period.
            peer_analysis: Full JSON-serializable document (replaces any prior one).

        Raises:
            PersistenceError: If the write fails or no statement matches.
        """
