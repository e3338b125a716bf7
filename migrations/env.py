# migrations/env.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Alembic environment for the Peerscope statement store.

Migrations run online on an async engine. The target database comes from
``DATABASE_URL`` (exported, or read from ``.env``) and falls back to
``sqlalchemy.url`` in alembic.ini. ``ENVIRONMENT`` must be set, and the
database name must be on that environment's allowlist.

Usage:
    ENVIRONMENT=development alembic upgrade head
"""

from __future__ import annotations

import asyncio
import logging.config
import os
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import create_async_engine

from peerscope.infrastructure.database.models import banking as _banking_models  # noqa: F401
from peerscope.infrastructure.database.models.base import metadata as target_metadata

config = context.config
if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

load_dotenv(Path(__file__).resolve().parents[1] / ".env", override=False)

# None accepts any database name.
_ALLOWED_DATABASES: dict[str, frozenset[str] | None] = {
    "test": frozenset({"peerscope_test"}),
    "ci": frozenset({"peerscope_test"}),
    "development": frozenset({"peerscope"}),
    "staging": None,
    "production": None,
}


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_URL is not set and alembic.ini has no sqlalchemy.url.")
    return url


def _check_target(url: str) -> None:
    """Refuse to migrate a database that is not allowed for ENVIRONMENT."""
    environment = (os.getenv("ENVIRONMENT") or "").strip().lower()
    if environment not in _ALLOWED_DATABASES:
        raise RuntimeError(
            f"ENVIRONMENT must be one of {sorted(_ALLOWED_DATABASES)} to run migrations, "
            f"got {environment!r}."
        )

    parsed = make_url(url)
    name = parsed.database or ""
    if parsed.get_backend_name() == "sqlite":
        name = Path(name).stem

    allowed = _ALLOWED_DATABASES[environment]
    if allowed is not None and name not in allowed:
        raise RuntimeError(
            f"Refusing to migrate database {name!r} with ENVIRONMENT={environment!r} "
            f"(allowed: {sorted(allowed)}; url: {parsed.render_as_string(hide_password=True)})."
        )


def _run(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


async def _run_online() -> None:
    url = _database_url()
    _check_target(url)
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    raise RuntimeError("Offline (--sql) migrations are not supported; run against a database.")
asyncio.run(_run_online())
