# tests/unit/application/test_period_snapshot_cache.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT

from __future__ import annotations

import asyncio
import gc
from datetime import date

import pytest

from peerscope.application.services.period_snapshot_cache import (
    PeriodSnapshot,
    PeriodSnapshotCache,
)
from peerscope.domain.entities.institution import InstitutionSize
from peerscope.domain.services.ranking_engine import build_population_rankings
from tests.fixtures.peer_testkit import Q1, Q2, Q3, make_statement


def _snapshot(period: date) -> PeriodSnapshot:
    statements = [make_statement("A", period, total_assets=10.0, roa=1.0)]
    return PeriodSnapshot(
        period=period,
        sizes=[InstitutionSize("A", 10.0)],
        statements=statements,
        rankings=build_population_rankings(statements),
    )


class _Loader:
    def __init__(self, *, gate: asyncio.Event | None = None) -> None:
        self.calls: list[date] = []
        self.gate = gate
        self.failures: dict[date, Exception] = {}

    async def __call__(self, period: date) -> PeriodSnapshot:
        self.calls.append(period)
        if self.gate is not None:
            await self.gate.wait()
        if period in self.failures:
            raise self.failures.pop(period)
        return _snapshot(period)


def test_snapshot_lookups() -> None:
    snapshot = _snapshot(Q1)

    assert snapshot.size_of("A") == 10.0
    assert snapshot.size_of("missing") is None
    assert snapshot.statement_for("A") is not None
    assert snapshot.statements_for(["missing", "A"]) == [snapshot.statement_for("A")]


@pytest.mark.anyio
async def test_concurrent_gets_share_one_load() -> None:
    gate = asyncio.Event()
    loader = _Loader(gate=gate)
    cache = PeriodSnapshotCache(loader, max_entries=2)

    waiters = [asyncio.create_task(cache.get(Q1)) for _ in range(5)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*waiters)

    assert loader.calls == [Q1]
    assert cache.loads == 1
    assert all(r is results[0] for r in results)


@pytest.mark.anyio
async def test_least_recently_used_period_is_evicted() -> None:
    loader = _Loader()
    cache = PeriodSnapshotCache(loader, max_entries=2)

    await cache.get(Q1)
    await cache.get(Q2)
    await cache.get(Q1)
    await cache.get(Q3)

    assert len(cache) == 2
    await cache.get(Q1)
    await cache.get(Q2)
    assert loader.calls == [Q1, Q2, Q3, Q2]


@pytest.mark.anyio
async def test_failed_load_is_not_cached() -> None:
    loader = _Loader()
    loader.failures[Q1] = RuntimeError("store unavailable")
    cache = PeriodSnapshotCache(loader)

    with pytest.raises(RuntimeError, match="store unavailable"):
        await cache.get(Q1)
    snapshot = await cache.get(Q1)

    assert snapshot.period == Q1
    assert loader.calls == [Q1, Q1]


@pytest.mark.anyio
async def test_cancelled_waiter_does_not_cancel_shared_load() -> None:
    gate = asyncio.Event()
    loader = _Loader(gate=gate)
    cache = PeriodSnapshotCache(loader)

    first = asyncio.create_task(cache.get(Q1))
    second = asyncio.create_task(cache.get(Q1))
    await asyncio.sleep(0)
    first.cancel()
    gate.set()

    snapshot = await second
    with pytest.raises(asyncio.CancelledError):
        await first
    assert snapshot.period == Q1
    assert loader.calls == [Q1]


@pytest.mark.anyio
async def test_load_failing_after_clear_is_not_reported_unretrieved() -> None:
    loop = asyncio.get_running_loop()
    reported: list[dict[str, object]] = []
    previous = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    try:
        gate = asyncio.Event()
        loader = _Loader(gate=gate)
        loader.failures[Q1] = RuntimeError("store unavailable")
        cache = PeriodSnapshotCache(loader)

        waiter = asyncio.create_task(cache.get(Q1))
        await asyncio.sleep(0)
        waiter.cancel()
        cache.clear()
        gate.set()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        for _ in range(3):
            await asyncio.sleep(0)

        del waiter
        gc.collect()
    finally:
        loop.set_exception_handler(previous)

    assert len(cache) == 0
    assert reported == []


@pytest.mark.anyio
async def test_zero_capacity_disables_retention() -> None:
    loader = _Loader()
    cache = PeriodSnapshotCache(loader, max_entries=0)

    await cache.get(Q1)
    await cache.get(Q1)

    assert len(cache) == 0
    assert loader.calls == [Q1, Q1]


def test_negative_capacity_is_rejected() -> None:
    with pytest.raises(ValueError):
        PeriodSnapshotCache(_Loader(), max_entries=-1)
