# src/peerscope/infrastructure/logging/logger.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce JSON logs suitable for ingestion by log pipelines.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Optional enrichment with ``run_id`` from the active batch run
      (context variable, record attribute, or ``PEERSCOPE_RUN_ID`` env var).
    * Structured context passed as ``extra={"extra": {...}}`` is merged
      into the payload.

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("peer_analysis.run.start", extra={"extra": {"institutions": 42}})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "bind_run_id",
    "configure_root_logging",
    "get_json_logger",
    "reset_run_id",
]

_RUN_ID_ENV_KEY = "PEERSCOPE_RUN_ID"

_run_id_var: ContextVar[str | None] = ContextVar("peerscope_run_id", default=None)


def bind_run_id(run_id: str) -> Token[str | None]:
    """Bind a run id to the current context for log enrichment.

    Args:
        run_id: Identifier of the active batch run.

    Returns:
        Token to pass to :func:`reset_run_id`.
    """
    return _run_id_var.set(run_id)


def reset_run_id(token: Token[str | None]) -> None:
    """Restore the run id that was active before :func:`bind_run_id`."""
    _run_id_var.reset(token)


class _JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and optional extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            str: JSON-encoded log line.
        """
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid: str | None = (
            getattr(record, "run_id", None) or _run_id_var.get() or os.getenv(_RUN_ID_ENV_KEY)
        )
        if rid:
            payload["run_id"] = rid

        # Exceptions: guard against None in exc_info tuple.
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    if isinstance(resolved, str):
        resolved = resolved.upper()
    root.setLevel(resolved)

    if root.handlers:
        # Already configured; avoid duplicate handlers.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* implicitly configure the root logger. Call
    :func:`configure_root_logging` once at startup.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        logging.Logger: Configured logger.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.propagate = True
    return logger
