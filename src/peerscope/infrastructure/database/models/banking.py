# src/peerscope/infrastructure/database/models/banking.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Banking ORM models.

Purpose:
    Provide SQLAlchemy ORM mappings for the statement store read and written
    by the peer-analysis job:

    * ``institutions``: institution identity and display name.
    * ``financial_statements``: one row per (institution, reporting period)
      holding the schema-flexible schedules as JSON documents and the derived
      ``peer_analysis`` document.

Design:
    - Statements are keyed by a UUID primary key with a unique natural key
      (institution_id, reporting_period).
    - Size is read from ``balanceSheet.assets.totalAssets`` like every other
      metric; there is no separate size column.
    - ``peer_analysis`` is overwritten as a whole on every run.

Layer:
    infrastructure / database / models
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from peerscope.infrastructure.database.models.base import Base, JSONDocument


class InstitutionRow(Base):
    """Institution identity (institutions)."""

    __tablename__ = "institutions"

    institution_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class FinancialStatementRow(Base):
    """Financial statement snapshot (financial_statements)."""

    __tablename__ = "financial_statements"
    __table_args__ = (
        UniqueConstraint(
            "institution_id",
            "reporting_period",
            name="uq_financial_statements_identity",
        ),
        Index("ix_financial_statements_reporting_period", "reporting_period"),
    )

    statement_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    institution_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    reporting_period: Mapped[date] = mapped_column(Date, nullable=False)

    balance_sheet: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    income_statement: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    ratios: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)

    peer_analysis: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    peer_analysis_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
