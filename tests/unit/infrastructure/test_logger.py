# tests/unit/infrastructure/test_logger.py
from __future__ import annotations

import json
import logging
import sys

import pytest

from peerscope.infrastructure.logging.logger import (
    _JsonFormatter,  # internal but importable
    bind_run_id,
    configure_root_logging,
    get_json_logger,
    reset_run_id,
)


def _capture_log(record_msg: str, level: int = logging.INFO, **extra) -> dict:
    """Format a record through the JSON formatter and return the parsed payload."""
    logger = logging.getLogger("test.logger")
    fmt = _JsonFormatter()

    record = logger.makeRecord(
        name=logger.name,
        level=level,
        fn="test_logger",
        lno=123,
        msg=record_msg,
        args=(),
        exc_info=None,
    )
    for k, v in extra.items():
        setattr(record, k, v)
    return json.loads(fmt.format(record))


def test_configure_root_logging_installs_json_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    """Root logger should get a JSON formatter and respect LOG_LEVEL."""
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved = root.handlers[:]
    saved_level = root.level
    root.handlers.clear()
    try:
        configure_root_logging()
        configure_root_logging()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, _JsonFormatter)
    finally:
        root.handlers[:] = saved
        root.setLevel(saved_level)


def test_configure_root_logging_explicit_level_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved_level = root.level
    try:
        configure_root_logging("warning")
        assert root.level == logging.WARNING
    finally:
        root.setLevel(saved_level)


def test_json_formatter_basic_fields() -> None:
    """Formatter should emit ts, level, logger and message."""
    payload = _capture_log("hello-world")
    assert payload["message"] == "hello-world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert "ts" in payload
    assert "run_id" not in payload


def test_json_formatter_merges_structured_extra() -> None:
    payload = _capture_log(
        "peer_analysis.institution.completed",
        extra={"institution_id": "1001", "periods": 4},
    )
    assert payload["institution_id"] == "1001"
    assert payload["periods"] == 4


def test_json_formatter_run_id_sources(monkeypatch: pytest.MonkeyPatch) -> None:
    """run_id comes from the record, then the bound context, then PEERSCOPE_RUN_ID."""
    monkeypatch.delenv("PEERSCOPE_RUN_ID", raising=False)

    assert _capture_log("with-record-id", run_id="abc-123")["run_id"] == "abc-123"

    token = bind_run_id("ctx-run")
    try:
        assert _capture_log("with-context-id")["run_id"] == "ctx-run"
    finally:
        reset_run_id(token)

    monkeypatch.setenv("PEERSCOPE_RUN_ID", "env-run")
    assert _capture_log("with-env-id")["run_id"] == "env-run"


def test_json_formatter_includes_exception_info() -> None:
    """Formatter should add exc_type and exc_message for errors with exc_info."""
    logger = get_json_logger("test.logger.exc")
    fmt = _JsonFormatter()

    try:
        raise ValueError("boom")
    except ValueError:
        record = logger.makeRecord(
            name=logger.name,
            level=logging.ERROR,
            fn="test_logger",
            lno=1,
            msg="failure",
            args=(),
            exc_info=sys.exc_info(),
        )

    payload = json.loads(fmt.format(record))
    assert payload["level"] == "ERROR"
    assert payload["exc_type"] == "ValueError"
    assert "boom" in payload["exc_message"]
