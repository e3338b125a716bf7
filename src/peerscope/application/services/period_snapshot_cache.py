# src/peerscope/application/services/period_snapshot_cache.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Period snapshot cache (in-process, single-flight).

Synopsis:
    Holds the population data of recently used reporting periods so that
    institutions processed concurrently (or back to back) at the same period
    share one bulk read and one per-metric population sort.

Design:
    * Bounded LRU keyed by reporting period; ``max_entries=0`` disables
      retention but keeps single-flight for concurrent callers.
    * Single-flight: concurrent ``get()`` calls for the same period await one
      shared load task.
    * A failed load is evicted so that later callers retry it; every caller
      waiting on that load receives the exception.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.entities.institution import InstitutionSize
from peerscope.domain.services.ranking_engine import PopulationRankings

__all__ = ["PeriodSnapshot", "PeriodSnapshotCache", "PeriodSnapshotLoader"]


@dataclass(frozen=True)
class PeriodSnapshot:
    """Population data for one reporting period.

    Attributes:
        period: Reporting period.
        sizes: Size of every institution reporting at the period.
        statements: Every statement at the period (one bulk read).
        rankings: Population sorted once per tracked metric.
    """

    period: date
    sizes: Sequence[InstitutionSize]
    statements: Sequence[FinancialStatement]
    rankings: PopulationRankings
    _by_id: Mapping[str, FinancialStatement] = field(init=False, repr=False, compare=False)
    _size_by_id: Mapping[str, float | None] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {s.institution_id: s for s in self.statements})
        object.__setattr__(self, "_size_by_id", {m.institution_id: m.size for m in self.sizes})

    def statement_for(self, institution_id: str) -> FinancialStatement | None:
        """Return the statement of one institution at this period, if any."""
        return self._by_id.get(institution_id)

    def statements_for(self, institution_ids: Sequence[str]) -> list[FinancialStatement]:
        """Return the statements of the given institutions, in input order."""
        return [self._by_id[iid] for iid in institution_ids if iid in self._by_id]

    def size_of(self, institution_id: str) -> float | None:
        """Return the size of one institution at this period, if applicable."""
        return self._size_by_id.get(institution_id)


PeriodSnapshotLoader = Callable[[date], Awaitable[PeriodSnapshot]]


class PeriodSnapshotCache:
    """Bounded, single-flight cache of :class:`PeriodSnapshot` objects."""

    def __init__(self, loader: PeriodSnapshotLoader, *, max_entries: int = 4) -> None:
        """Initialize the cache.

        Args:
            loader: Coroutine function that reads a period snapshot from the store.
            max_entries: Maximum number of retained periods (0 disables retention).

        Raises:
            ValueError: If ``max_entries`` is negative.
        """
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self._loader = loader
        self._max_entries = max_entries
        self._entries: OrderedDict[date, asyncio.Task[PeriodSnapshot]] = OrderedDict()
        self._loads = 0

    @property
    def loads(self) -> int:
        """Return how many times the loader has been invoked."""
        return self._loads

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, period: date) -> PeriodSnapshot:
        """Return the snapshot for a period, loading it at most once concurrently.

        Args:
            period: Reporting period.

        Returns:
            The period snapshot.

        Raises:
            Exception: Whatever the loader raised for this period.
        """
        task = self._entries.get(period)
        if task is not None:
            self._entries.move_to_end(period)
        else:
            self._loads += 1
            task = asyncio.ensure_future(self._loader(period))
            self._entries[period] = task
            task.add_done_callback(lambda t, p=period: self._on_done(p, t))

        # Shield so that a cancelled waiter does not cancel a load others await.
        return await asyncio.shield(task)

    def clear(self) -> None:
        """Drop every retained snapshot (pending loads keep running)."""
        self._entries.clear()

    def _on_done(self, period: date, task: asyncio.Task[PeriodSnapshot]) -> None:
        # Mark the exception retrieved even for loads detached by clear().
        failed = task.cancelled() or task.exception() is not None
        if self._entries.get(period) is not task:
            return
        if failed:
            del self._entries[period]
            return
        while len(self._entries) > self._max_entries:
            oldest, oldest_task = next(iter(self._entries.items()))
            if not oldest_task.done():
                break
            del self._entries[oldest]
