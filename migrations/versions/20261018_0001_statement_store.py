"""Create the statement store read and written by the peer-analysis job.

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18

This migration:
  * Creates ``institutions`` (identity and display name).
  * Creates ``financial_statements`` (one row per institution/reporting period,
    JSON schedules and the peer-analysis document).

Notes:
  - JSON columns use JSONB on PostgreSQL and plain JSON elsewhere.
  - ``ix_financial_statements_reporting_period`` serves the per-period bulk
    statement reads.
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Apply the migration."""
    op.create_table(
        "institutions",
        sa.Column("institution_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("institution_id", name="pk_institutions"),
    )

    op.create_table(
        "financial_statements",
        sa.Column("statement_id", sa.Uuid(), nullable=False),
        sa.Column("institution_id", sa.String(32), nullable=False),
        sa.Column("reporting_period", sa.Date(), nullable=False),
        sa.Column("balance_sheet", _JSON, nullable=True),
        sa.Column("income_statement", _JSON, nullable=True),
        sa.Column("ratios", _JSON, nullable=True),
        sa.Column("peer_analysis", _JSON, nullable=True),
        sa.Column("peer_analysis_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("statement_id", name="pk_financial_statements"),
        sa.UniqueConstraint(
            "institution_id",
            "reporting_period",
            name="uq_financial_statements_identity",
        ),
    )
    op.create_index(
        "ix_financial_statements_institution_id",
        "financial_statements",
        ["institution_id"],
    )
    op.create_index(
        "ix_financial_statements_reporting_period",
        "financial_statements",
        ["reporting_period"],
    )


def downgrade() -> None:
    """Revert the migration."""
    op.drop_index("ix_financial_statements_reporting_period", table_name="financial_statements")
    op.drop_index("ix_financial_statements_institution_id", table_name="financial_statements")
    op.drop_table("financial_statements")
    op.drop_table("institutions")
