# src/peerscope/application/uow.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Unit of Work (Application Layer).

Purpose:
    Define the abstract Unit-of-Work boundary used by application-layer use
    cases to scope a store session and its repositories.

    This module is intentionally infrastructure-agnostic:
        * No SQLAlchemy / DB imports.
        * No concrete repository implementations.
        * Only Protocols for use cases.

    Concrete implementations (e.g. SQLAlchemy-backed UoW) live in the
    adapters/ layer and must satisfy this protocol.

Layer:
    application
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from types import TracebackType
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """Abstract Unit-of-Work contract for application use cases."""

    async def __aenter__(self) -> UnitOfWork:
        """Enter the transactional scope and return the active UoW."""
        raise NotImplementedError

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Exit the transactional scope."""
        raise NotImplementedError

    async def commit(self) -> None:
        """Commit the pending changes; the scope stays usable for further work."""
        raise NotImplementedError

    async def rollback(self) -> None:
        """Roll back any pending changes for this UnitOfWork."""
        raise NotImplementedError

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return a repository instance for the given key/type.

        Args:
            repo_type:
                Opaque key used to resolve a repository, typically a protocol
                type such as ``FinancialStatementsRepository``.
        """
        raise NotImplementedError


#: Factory producing a fresh UnitOfWork per unit of work (one per institution).
UnitOfWorkFactory = Callable[[], UnitOfWork]

