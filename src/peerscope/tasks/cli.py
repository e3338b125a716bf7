# src/peerscope/tasks/cli.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Peerscope CLI: operational commands.

Commands:
    peers run      Compute and store peer analysis for every institution/period.

Environment:
    DATABASE_URL                    Async SQLAlchemy URL.
    PEER_COUNT                      Peers selected on each side of the target.
    PEER_BATCH_CONCURRENCY          Institutions processed concurrently.
    PEER_TOP_N                      Process only the N largest institutions.
    PEER_EMPTY_INSTITUTION_POLICY   "skip" or "error".
    PEER_PERIOD_CACHE_SIZE          Period snapshots retained during a run.
    PROMETHEUS_PUSHGATEWAY_URL      Pushgateway that receives run metrics (optional).
    PROMETHEUS_JOB                  Pushgateway job label.
    LOG_LEVEL                       Root log level.

Exit codes:
    0  The run completed (individual institution failures are reported in the
       summary, not through the exit code).
    1  The run could not start or enumerate its population.
    2  Invalid configuration.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import uuid
from datetime import datetime
from typing import Any

import typer
from pydantic import ValidationError

from peerscope.adapters.uow.sqlalchemy_uow import SqlAlchemyUnitOfWork
from peerscope.application.use_cases.peer_analysis.run_peer_analysis_batch import (
    PeerAnalysisRunRequest,
    PeerAnalysisRunSummary,
    RunPeerAnalysisBatch,
)
from peerscope.config.settings import Settings, get_settings
from peerscope.domain.enums.empty_institution_policy import EmptyInstitutionPolicy
from peerscope.domain.exceptions.peer_analysis import (
    PopulationUnavailableError,
    RunAlreadyActiveError,
)
from peerscope.infrastructure.database.session import DatabaseContext
from peerscope.infrastructure.locking.advisory_lock import build_run_lock
from peerscope.infrastructure.logging.logger import (
    bind_run_id,
    configure_root_logging,
    get_json_logger,
    reset_run_id,
)
from peerscope.infrastructure.observability.metrics_peer_analysis import (
    PrometheusPeerAnalysisMetrics,
    push_peer_analysis_metrics,
)

configure_root_logging()
log = get_json_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)
peers_app = typer.Typer(no_args_is_help=True)
app.add_typer(peers_app, name="peers")


def _load_settings(database_url: str | None) -> Settings:
    """Resolve settings, letting an explicit ``--database-url`` win over the environment.

    Raises:
        typer.Exit: With code 2 when configuration is invalid.
    """
    try:
        if database_url:
            return Settings(database_url=database_url)
        return get_settings()
    except (ValidationError, RuntimeError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _summary_document(summary: PeerAnalysisRunSummary) -> dict[str, Any]:
    def _iso(value: datetime | None) -> str | None:
        return value.isoformat() if value is not None else None

    return {
        "runId": summary.run_id,
        "processed": summary.processed,
        "errors": summary.errors,
        "skipped": summary.skipped,
        "periodsWritten": summary.periods_written,
        "failedInstitutionIds": list(summary.failed_institution_ids),
        "cancelled": summary.cancelled,
        "startedAt": _iso(summary.started_at),
        "finishedAt": _iso(summary.finished_at),
    }


@peers_app.command("run")
def peers_run(
    database_url: str | None = typer.Option(
        None, "--database-url", help="Async SQLAlchemy URL (defaults to DATABASE_URL)."
    ),  # noqa: B008
    institution: list[str] | None = typer.Option(
        None, "--institution", help="Process only this institution id (repeatable)."
    ),  # noqa: B008
    period: datetime | None = typer.Option(
        None, "--period", formats=["%Y-%m-%d"], help="Process only this reporting period."
    ),  # noqa: B008
    top: int | None = typer.Option(
        None, "--top", min=1, help="Process only the N largest institutions."
    ),  # noqa: B008
    peers: int | None = typer.Option(
        None, "--peers", min=1, help="Peers selected on each side of the target."
    ),  # noqa: B008
    concurrency: int | None = typer.Option(
        None, "--concurrency", min=1, help="Institutions processed concurrently."
    ),  # noqa: B008
    empty_policy: EmptyInstitutionPolicy | None = typer.Option(
        None, "--empty-policy", help="How to account for institutions without statements."
    ),  # noqa: B008
) -> None:
    """Compute peer cohorts, averages and rankings and store them per statement.

    Every run recomputes from scratch and overwrites existing results, so a
    failed or cancelled run is recovered by running again.
    """
    settings = _load_settings(database_url)
    configure_root_logging(settings.log_level)

    run_id = uuid.uuid4().hex
    request = PeerAnalysisRunRequest(
        run_id=run_id,
        institution_ids=list(institution) if institution else None,
        period=period.date() if period is not None else None,
        top_n=top if top is not None else settings.top_n,
    )

    async def _run() -> PeerAnalysisRunSummary:
        async with DatabaseContext.from_settings(settings) as db:
            uc = RunPeerAnalysisBatch(
                lambda: SqlAlchemyUnitOfWork(session_factory=db.sessionmaker),
                peer_count=peers if peers is not None else settings.peer_count,
                concurrency=concurrency if concurrency is not None else settings.batch_concurrency,
                empty_institution_policy=empty_policy or settings.empty_institution_policy,
                period_cache_size=settings.period_cache_size,
                run_lock=build_run_lock(db.engine, settings.run_lock_key),
                metrics_port=PrometheusPeerAnalysisMetrics(),
            )

            loop = asyncio.get_running_loop()
            for signum in (signal.SIGINT, signal.SIGTERM):
                # Signal handlers are unavailable on some platforms (Windows).
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(signum, uc.cancel)
            try:
                return await uc(request)
            finally:
                for signum in (signal.SIGINT, signal.SIGTERM):
                    with contextlib.suppress(NotImplementedError):
                        loop.remove_signal_handler(signum)

    token = bind_run_id(run_id)
    try:
        summary = asyncio.run(_run())
    except RunAlreadyActiveError as exc:
        log.error("peer_analysis.run.rejected", extra={"extra": {"reason": exc.message}})
        typer.echo(f"Run rejected: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc
    except PopulationUnavailableError as exc:
        log.error(
            "peer_analysis.run.aborted",
            extra={"extra": {"reason": exc.message, "details": exc.details}},
        )
        typer.echo(f"Run aborted: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        if settings.prometheus_pushgateway_url:
            push_peer_analysis_metrics(
                settings.prometheus_pushgateway_url, job=settings.prometheus_job
            )
        reset_run_id(token)

    typer.echo(json.dumps(_summary_document(summary), sort_keys=True))


if __name__ == "__main__":
    app()
