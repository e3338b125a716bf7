# src/peerscope/adapters/repositories/financial_statements_repository.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""SQLAlchemy implementation of the financial statements repository.

Purpose:
    Serve the peer-analysis job's logical reads (population sizes, bulk
    period statements, institution periods) and its single write (overwrite
    the ``peer_analysis`` document of one statement).

Layer:
    adapters / repositories

Notes:
    * Deterministic ordering on every list query (institution id / period).
    * Driver errors are translated into ``PersistenceError``.
    * Repositories never commit; the unit of work owns transactions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.entities.institution import InstitutionSize
from peerscope.domain.exceptions.peer_analysis import PersistenceError
from peerscope.domain.interfaces.repositories.financial_statements_repository import (
    FinancialStatementsRepository as FinancialStatementsRepositoryProtocol,
)
from peerscope.domain.enums.peer_metric import SIZE_METRIC
from peerscope.domain.services.metric_extractor import extract_metric
from peerscope.infrastructure.database.models.base import now_utc
from peerscope.infrastructure.database.models.banking import (
    FinancialStatementRow,
    InstitutionRow,
)


class FinancialStatementsRepository(FinancialStatementsRepositoryProtocol):
    """SQLAlchemy-backed statement store."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the statement store.
        """
        self._session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_institution_ids_with_statements(self) -> Sequence[str]:
        stmt = (
            select(FinancialStatementRow.institution_id)
            .distinct()
            .order_by(FinancialStatementRow.institution_id.asc())
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to list institutions with statements.",
                details={"error": type(exc).__name__},
            ) from exc
        return list(result.scalars().all())

    async def get_latest_size_metric(self, institution_id: str) -> float | None:
        sizes = await self.get_latest_size_metrics([institution_id])
        return sizes.get(institution_id)

    async def get_latest_size_metrics(
        self,
        institution_ids: Sequence[str],
    ) -> Mapping[str, float | None]:
        if not institution_ids:
            return {}

        latest = (
            select(
                FinancialStatementRow.institution_id.label("institution_id"),
                func.max(FinancialStatementRow.reporting_period).label("reporting_period"),
            )
            .where(FinancialStatementRow.institution_id.in_(list(institution_ids)))
            .group_by(FinancialStatementRow.institution_id)
            .subquery()
        )
        stmt = select(
            FinancialStatementRow.institution_id,
            FinancialStatementRow.reporting_period,
            FinancialStatementRow.balance_sheet,
        ).join(
            latest,
            (FinancialStatementRow.institution_id == latest.c.institution_id)
            & (FinancialStatementRow.reporting_period == latest.c.reporting_period),
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to load latest institution sizes.",
                details={"error": type(exc).__name__, "count": len(institution_ids)},
            ) from exc

        sizes: dict[str, float | None] = {iid: None for iid in institution_ids}
        for institution_id, period, balance_sheet in result.all():
            sizes[institution_id] = self._size_of(institution_id, period, balance_sheet)
        return sizes

    async def list_periods_for_institution(self, institution_id: str) -> Sequence[date]:
        stmt = (
            select(FinancialStatementRow.reporting_period)
            .where(FinancialStatementRow.institution_id == institution_id)
            .order_by(FinancialStatementRow.reporting_period.asc())
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to list reporting periods.",
                details={"institution_id": institution_id, "error": type(exc).__name__},
            ) from exc
        return list(result.scalars().all())

    async def get_population_sizes_at_period(self, period: date) -> Sequence[InstitutionSize]:
        stmt = (
            select(FinancialStatementRow.institution_id, FinancialStatementRow.balance_sheet)
            .where(FinancialStatementRow.reporting_period == period)
            .order_by(FinancialStatementRow.institution_id.asc())
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to load population sizes.",
                details={"period": period.isoformat(), "error": type(exc).__name__},
            ) from exc
        return [
            InstitutionSize(institution_id=iid, size=self._size_of(iid, period, balance_sheet))
            for iid, balance_sheet in result.all()
        ]

    async def get_statements_for_period(self, period: date) -> Sequence[FinancialStatement]:
        stmt = (
            select(FinancialStatementRow)
            .where(FinancialStatementRow.reporting_period == period)
            .order_by(FinancialStatementRow.institution_id.asc())
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to load statements for period.",
                details={"period": period.isoformat(), "error": type(exc).__name__},
            ) from exc
        return [self._to_entity(row) for row in result.scalars().all()]

    async def get_institution_names(self, institution_ids: Sequence[str]) -> Mapping[str, str]:
        if not institution_ids:
            return {}
        stmt = select(InstitutionRow.institution_id, InstitutionRow.name).where(
            InstitutionRow.institution_id.in_(list(institution_ids))
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to load institution names.",
                details={"error": type(exc).__name__},
            ) from exc
        return {iid: name for iid, name in result.all() if name}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_peer_analysis(
        self,
        institution_id: str,
        period: date,
        peer_analysis: Mapping[str, Any],
    ) -> None:
        stmt = (
            update(FinancialStatementRow)
            .where(
                FinancialStatementRow.institution_id == institution_id,
                FinancialStatementRow.reporting_period == period,
            )
            .values(
                peer_analysis=dict(peer_analysis),
                peer_analysis_updated_at=now_utc(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to write peer analysis.",
                details={
                    "institution_id": institution_id,
                    "period": period.isoformat(),
                    "error": type(exc).__name__,
                },
            ) from exc

        if result.rowcount == 0:
            raise PersistenceError(
                "No statement matched the peer-analysis write.",
                details={"institution_id": institution_id, "period": period.isoformat()},
            )

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _size_of(
        institution_id: str,
        period: date,
        balance_sheet: Mapping[str, Any] | None,
    ) -> float | None:
        # Same extractor the ranking uses, so cohorts and rankings agree on size.
        statement = FinancialStatement(
            institution_id=institution_id,
            reporting_period=period,
            balance_sheet=balance_sheet or {},
        )
        return extract_metric(statement, SIZE_METRIC)

    @staticmethod
    def _to_entity(row: FinancialStatementRow) -> FinancialStatement:
        return FinancialStatement(
            institution_id=row.institution_id,
            reporting_period=row.reporting_period,
            balance_sheet=row.balance_sheet or {},
            income_statement=row.income_statement or {},
            ratios=row.ratios or {},
        )
