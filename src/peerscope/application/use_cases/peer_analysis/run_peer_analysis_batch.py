# src/peerscope/application/use_cases/peer_analysis/run_peer_analysis_batch.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Use case: Run peer analysis across the institution population.

Scope:
    * Enumerate institutions with statements (or take an explicit list),
      order them largest-to-smallest by latest size, optionally keep the
      top N.
    * Process institutions with a bounded pool of workers pulling from a
      queue. Each institution walks its reporting periods oldest-to-newest,
      computes a :class:`PeerAnalysis` per period and overwrites it in the
      store, committing each institution-period write on its own.
    * Isolate failures: one institution's exception is logged, counted and
      does not affect any other institution.
    * Support cooperative cancellation: in-flight institutions finish, no
      further institutions start.

Failure to enumerate the population is fatal for the run and raises
:class:`PopulationUnavailableError`. Nothing is retried automatically; a rerun
recomputes and overwrites everything.

Layer:
    application
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum

from peerscope.application.interfaces.metrics_port import (
    NullPeerAnalysisMetrics,
    PeerAnalysisMetricsPort,
)
from peerscope.application.interfaces.run_lock import NullRunLock, RunLock
from peerscope.application.services.period_snapshot_cache import (
    PeriodSnapshot,
    PeriodSnapshotCache,
)
from peerscope.application.uow import UnitOfWorkFactory
from peerscope.application.use_cases.peer_analysis.generate_peer_analysis import (
    GeneratePeerAnalysis,
    load_period_snapshot,
)
from peerscope.domain.enums.empty_institution_policy import EmptyInstitutionPolicy
from peerscope.domain.enums.peer_metric import ALL_PEER_METRICS, PeerMetric
from peerscope.domain.exceptions.peer_analysis import (
    InstitutionProcessingError,
    NoStatementsError,
    PopulationUnavailableError,
    RunAlreadyActiveError,
)
from peerscope.domain.interfaces.repositories.financial_statements_repository import (
    FinancialStatementsRepository,
)
from peerscope.domain.services.peer_selector import DEFAULT_PEER_COUNT

logger = logging.getLogger(__name__)

#: Default number of institutions processed concurrently.
DEFAULT_CONCURRENCY = 10


class RunState(str, Enum):
    """Lifecycle of one batch run."""

    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"


class InstitutionState(str, Enum):
    """Lifecycle of one institution within a run."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PeerAnalysisRunRequest:
    """Request parameters for a batch run.

    Attributes:
        institution_ids: Explicit institutions to process; ``None`` processes
            every institution with statements.
        period: Restrict processing to one reporting period.
        top_n: Keep only the N largest institutions after ordering.
        run_id: Correlation id for logs and the summary; generated when omitted.
    """

    institution_ids: Sequence[str] | None = None
    period: date | None = None
    top_n: int | None = None
    run_id: str | None = None


@dataclass
class PeerAnalysisRunSummary:
    """Aggregate outcome of a batch run."""

    run_id: str
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    periods_written: int = 0
    failed_institution_ids: list[str] = field(default_factory=list)
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None


class RunPeerAnalysisBatch:
    """Drive peer analysis over the institution population."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        peer_count: int = DEFAULT_PEER_COUNT,
        concurrency: int = DEFAULT_CONCURRENCY,
        metrics: Sequence[PeerMetric] = ALL_PEER_METRICS,
        empty_institution_policy: EmptyInstitutionPolicy = EmptyInstitutionPolicy.SKIP,
        period_cache_size: int = 4,
        run_lock: RunLock | None = None,
        metrics_port: PeerAnalysisMetricsPort | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the use case.

        Args:
            uow_factory: Returns a fresh UnitOfWork; one is opened per
                institution and per period-snapshot load.
            peer_count: Peers selected on each side of the target (N).
            concurrency: Maximum number of institutions in flight.
            metrics: Metrics to average and rank.
            empty_institution_policy: Whether institutions without any
                qualifying period are skipped or counted as errors.
            period_cache_size: Period snapshots retained during the run.
            run_lock: Cross-process exclusivity guard.
            metrics_port: Observation hooks.
            clock: Returns the UTC timestamp recorded on analyses.

        Raises:
            ValueError: If ``concurrency`` is not positive.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._uow_factory = uow_factory
        self._concurrency = concurrency
        self._metrics = tuple(metrics)
        self._generate = GeneratePeerAnalysis(peer_count=peer_count, metrics=self._metrics)
        self._empty_policy = empty_institution_policy
        self._period_cache_size = period_cache_size
        self._run_lock: RunLock = run_lock or NullRunLock()
        self._observer: PeerAnalysisMetricsPort = metrics_port or NullPeerAnalysisMetrics()
        self._clock = clock or (lambda: datetime.now(UTC))

        self._state = RunState.NOT_STARTED
        self._cancel = asyncio.Event()
        self._institution_states: dict[str, InstitutionState] = {}
        self._names: dict[str, str] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        """Return the run lifecycle state."""
        return self._state

    @property
    def institution_states(self) -> dict[str, InstitutionState]:
        """Return a copy of the per-institution states of the current/last run."""
        return dict(self._institution_states)

    def cancel(self) -> None:
        """Stop scheduling further institutions; in-flight ones complete."""
        if not self._cancel.is_set():
            logger.warning("peer_analysis.run.cancel_requested")
        self._cancel.set()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def __call__(
        self,
        request: PeerAnalysisRunRequest | None = None,
    ) -> PeerAnalysisRunSummary:
        """Execute a batch run.

        Args:
            request: Run parameters (defaults to the whole population).

        Returns:
            PeerAnalysisRunSummary with processed/errored counts.

        Raises:
            RunAlreadyActiveError: If this orchestrator is already running or
                another process holds the run lock.
            PopulationUnavailableError: If the institution population cannot
                be enumerated.
        """
        if self._state is RunState.RUNNING:
            raise RunAlreadyActiveError("A peer-analysis run is already in progress.")
        request = request or PeerAnalysisRunRequest()

        previous_state, self._state = self._state, RunState.RUNNING
        try:
            acquired = await self._run_lock.acquire()
        except BaseException:
            self._state = previous_state
            raise
        if not acquired:
            self._state = previous_state
            logger.warning("peer_analysis.run.lock_busy")
            raise RunAlreadyActiveError(
                "Another peer-analysis run holds the run lock.",
                details={"reason": "lock_busy"},
            )

        self._cancel.clear()
        self._institution_states = {}
        summary = PeerAnalysisRunSummary(
            run_id=request.run_id or uuid.uuid4().hex,
            started_at=self._clock(),
        )
        started = time.perf_counter()
        cache = PeriodSnapshotCache(self._load_snapshot, max_entries=self._period_cache_size)

        try:
            ordered = await self._ordered_institutions(request)
            self._institution_states = {iid: InstitutionState.PENDING for iid in ordered}
            logger.info(
                "peer_analysis.run.start",
                extra={
                    "extra": {
                        "run_id": summary.run_id,
                        "institutions": len(ordered),
                        "period": request.period.isoformat() if request.period else None,
                        "concurrency": self._concurrency,
                    }
                },
            )

            queue: asyncio.Queue[str] = asyncio.Queue()
            for institution_id in ordered:
                queue.put_nowait(institution_id)

            workers = [
                asyncio.create_task(self._worker(queue, cache, request, summary))
                for _ in range(min(self._concurrency, len(ordered)))
            ]
            try:
                await asyncio.gather(*workers)
            except BaseException:
                for worker in workers:
                    worker.cancel()
                await asyncio.gather(*workers, return_exceptions=True)
                raise

            summary.cancelled = self._cancel.is_set() and not queue.empty()
        finally:
            cache.clear()
            self._state = RunState.FINISHED
            summary.finished_at = self._clock()
            elapsed = time.perf_counter() - started
            self._observer.observe_run(elapsed)
            await self._run_lock.release()

        logger.info(
            "peer_analysis.run.finished",
            extra={
                "extra": {
                    "run_id": summary.run_id,
                    "processed": summary.processed,
                    "errors": summary.errors,
                    "skipped": summary.skipped,
                    "periods_written": summary.periods_written,
                    "cancelled": summary.cancelled,
                    "elapsed_s": round(elapsed, 3),
                }
            },
        )
        return summary

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    async def _ordered_institutions(self, request: PeerAnalysisRunRequest) -> list[str]:
        """Return the institutions to process, largest latest size first."""
        try:
            async with self._uow_factory() as uow:
                repo: FinancialStatementsRepository = uow.get_repository(
                    FinancialStatementsRepository
                )
                if request.institution_ids is not None:
                    ids = list(dict.fromkeys(request.institution_ids))
                else:
                    ids = list(await repo.list_institution_ids_with_statements())
                sizes = await repo.get_latest_size_metrics(ids)
        except Exception as exc:
            logger.exception(
                "peer_analysis.run.population_unavailable",
                extra={"extra": {"error": type(exc).__name__}},
            )
            raise PopulationUnavailableError(
                "Unable to enumerate the institution population.",
                details={"error": type(exc).__name__, "message": str(exc)},
            ) from exc

        def _order_key(institution_id: str) -> tuple[bool, float, str]:
            size = sizes.get(institution_id)
            return (size is None, -(size or 0.0), institution_id)

        ordered = sorted(ids, key=_order_key)
        if request.top_n is not None:
            ordered = ordered[: request.top_n]
        self._names = await self._load_names(ordered)
        return ordered

    async def _load_names(self, institution_ids: Sequence[str]) -> dict[str, str]:
        """Return display names for log lines; a failed lookup is not fatal."""
        try:
            async with self._uow_factory() as uow:
                repo: FinancialStatementsRepository = uow.get_repository(
                    FinancialStatementsRepository
                )
                return dict(await repo.get_institution_names(institution_ids))
        except Exception as exc:
            logger.warning(
                "peer_analysis.run.names_unavailable",
                extra={"extra": {"error": type(exc).__name__}},
                exc_info=exc,
            )
            return {}

    async def _load_snapshot(self, period: date) -> PeriodSnapshot:
        async with self._uow_factory() as uow:
            repo: FinancialStatementsRepository = uow.get_repository(
                FinancialStatementsRepository
            )
            return await load_period_snapshot(repo, period, self._metrics)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _worker(
        self,
        queue: asyncio.Queue[str],
        cache: PeriodSnapshotCache,
        request: PeerAnalysisRunRequest,
        summary: PeerAnalysisRunSummary,
    ) -> None:
        while not self._cancel.is_set():
            try:
                institution_id = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self._process_institution(institution_id, cache, request, summary)
            finally:
                queue.task_done()

    async def _process_institution(
        self,
        institution_id: str,
        cache: PeriodSnapshotCache,
        request: PeerAnalysisRunRequest,
        summary: PeerAnalysisRunSummary,
    ) -> None:
        self._institution_states[institution_id] = InstitutionState.IN_PROGRESS
        logger.debug(
            "peer_analysis.institution.start",
            extra={"extra": {"institution_id": institution_id}},
        )
        started = time.perf_counter()
        current_period: date | None = None
        written = 0
        try:
            async with self._uow_factory() as uow:
                repo: FinancialStatementsRepository = uow.get_repository(
                    FinancialStatementsRepository
                )
                periods = list(await repo.list_periods_for_institution(institution_id))
                if request.period is not None:
                    periods = [p for p in periods if p == request.period]

                if not periods:
                    self._handle_no_periods(institution_id, request, summary, started)
                    return

                generated_at = self._clock()
                for period in periods:
                    current_period = period
                    snapshot = await cache.get(period)
                    analysis = self._generate(institution_id, snapshot, generated_at=generated_at)
                    await repo.update_peer_analysis(institution_id, period, analysis.to_document())
                    await uow.commit()
                    written += 1
                    summary.periods_written += 1
                    self._observer.observe_period(has_cohort=not analysis.cohort.is_empty)
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, InstitutionProcessingError)
                else InstitutionProcessingError(
                    str(exc) or type(exc).__name__,
                    institution_id=institution_id,
                    reporting_period=current_period,
                    details={"error": type(exc).__name__},
                )
            )
            self._record_failure(error, summary, started, periods_written=written, cause=exc)
            return

        self._institution_states[institution_id] = InstitutionState.COMPLETED
        summary.processed += 1
        elapsed = time.perf_counter() - started
        self._observer.observe_institution("completed", elapsed)
        logger.info(
            "peer_analysis.institution.completed",
            extra={
                "extra": {
                    "institution_id": institution_id,
                    "institution_name": self._names.get(institution_id),
                    "periods": written,
                    "elapsed_s": round(elapsed, 3),
                }
            },
        )

    def _handle_no_periods(
        self,
        institution_id: str,
        request: PeerAnalysisRunRequest,
        summary: PeerAnalysisRunSummary,
        started: float,
    ) -> None:
        if self._empty_policy is EmptyInstitutionPolicy.ERROR:
            raise NoStatementsError(
                "Institution has no statements to analyse.",
                institution_id=institution_id,
                reporting_period=request.period,
            )
        self._institution_states[institution_id] = InstitutionState.SKIPPED
        summary.skipped += 1
        self._observer.observe_institution("skipped", time.perf_counter() - started)
        logger.warning(
            "peer_analysis.institution.skipped",
            extra={
                "extra": {
                    "institution_id": institution_id,
                    "reason": "no_statements",
                    "period": request.period.isoformat() if request.period else None,
                }
            },
        )

    def _record_failure(
        self,
        error: InstitutionProcessingError,
        summary: PeerAnalysisRunSummary,
        started: float,
        *,
        periods_written: int,
        cause: BaseException,
    ) -> None:
        institution_id = error.institution_id
        self._institution_states[institution_id] = InstitutionState.FAILED
        summary.errors += 1
        summary.failed_institution_ids.append(institution_id)
        self._observer.observe_institution("failed", time.perf_counter() - started)
        logger.error(
            "peer_analysis.institution.failed",
            exc_info=cause,
            extra={
                "extra": {
                    "institution_id": institution_id,
                    "institution_name": self._names.get(institution_id),
                    "period": (
                        error.reporting_period.isoformat() if error.reporting_period else None
                    ),
                    "error_type": error.details.get("error", type(error).__name__),
                    "error": error.message,
                    "periods_written": periods_written,
                }
            },
        )
