# src/peerscope/infrastructure/locking/advisory_lock.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""PostgreSQL advisory-lock run guard.

Purpose:
    Serialize peer-analysis runs across processes with a session-level
    ``pg_try_advisory_lock``. The lock lives on a dedicated connection that
    is held open for the whole run and released (or dropped with the
    connection) afterwards.

Layer:
    infrastructure / locking

Notes:
    Non-PostgreSQL engines (SQLite in development) have no advisory locks;
    :func:`build_run_lock` returns a :class:`NullRunLock` for them.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from peerscope.application.interfaces.run_lock import NullRunLock, RunLock
from peerscope.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class PostgresAdvisoryRunLock:
    """Session-level advisory lock on a dedicated connection."""

    def __init__(self, engine: AsyncEngine, key: int) -> None:
        """Initialize the lock.

        Args:
            engine: Async engine bound to the PostgreSQL statement store.
            key: 64-bit advisory lock key shared by all peer-analysis runs.
        """
        self._engine = engine
        self._key = key
        self._conn: AsyncConnection | None = None

    async def acquire(self) -> bool:
        if self._conn is not None:
            return True
        conn = await self._engine.connect()
        try:
            result = await conn.execute(
                text("SELECT pg_try_advisory_lock(:key)"), {"key": self._key}
            )
            acquired = bool(result.scalar())
        except BaseException:
            await conn.close()
            raise
        if not acquired:
            await conn.close()
            logger.warning("run_lock.busy", extra={"extra": {"key": self._key}})
            return False
        self._conn = conn
        logger.info("run_lock.acquired", extra={"extra": {"key": self._key}})
        return True

    async def release(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": self._key})
        finally:
            await conn.close()
        logger.info("run_lock.released", extra={"extra": {"key": self._key}})


def build_run_lock(engine: AsyncEngine, key: int) -> RunLock:
    """Return the run lock appropriate for the engine's dialect."""
    if engine.dialect.name == "postgresql":
        return PostgresAdvisoryRunLock(engine, key)
    return NullRunLock()
