# src/peerscope/infrastructure/database/session.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine/session lifecycle.

This module owns the async SQLAlchemy engine and ``async_sessionmaker`` for
one batch run. The engine lives on an explicit :class:`DatabaseContext`
object that is passed to the orchestrator, rather than on module globals.

Lifecycle:
    * ``await ctx.open()`` (or ``async with DatabaseContext(url) as ctx``)
      before the run.
    * ``ctx.sessionmaker`` hands out one ``AsyncSession`` per unit of work.
    * ``await ctx.close()`` after the run or on cancellation.

Notes:
    * No business logic here; repositories consume the sessions.
    * ``pool_pre_ping=True`` helps surface dead connections before use.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from peerscope.config.settings import Settings
from peerscope.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class DatabaseContext:
    """Explicitly-scoped async engine and session factory."""

    def __init__(self, database_url: str, **engine_kwargs: Any) -> None:
        """Initialize the context without connecting.

        Args:
            database_url: Async SQLAlchemy URL.
            **engine_kwargs: Extra keyword arguments for ``create_async_engine``.

        Raises:
            ValueError: If ``database_url`` is empty.
        """
        if not database_url:
            raise ValueError("database_url must be configured")
        self._database_url = database_url
        self._engine_kwargs: dict[str, Any] = {"pool_pre_ping": True, **engine_kwargs}
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> DatabaseContext:
        """Build a context from application settings."""
        return cls(settings.database_url)

    @property
    def is_open(self) -> bool:
        """Return True when the engine has been created and not yet disposed."""
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """Return the active engine.

        Raises:
            RuntimeError: If the context is not open.
        """
        if self._engine is None:
            raise RuntimeError("DatabaseContext is not open (call open())")
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """Return the active session factory.

        Raises:
            RuntimeError: If the context is not open.
        """
        if self._sessionmaker is None:
            raise RuntimeError("DatabaseContext is not open (call open())")
        return self._sessionmaker

    async def open(self) -> None:
        """Create the engine and session factory (idempotent)."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self._database_url, **self._engine_kwargs)
        self._sessionmaker = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )
        logger.info("database.opened", extra={"extra": {"dialect": self._engine.dialect.name}})

    async def close(self) -> None:
        """Dispose the engine (idempotent)."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("database.closed")

    async def __aenter__(self) -> DatabaseContext:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
