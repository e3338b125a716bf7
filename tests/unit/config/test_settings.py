# tests/unit/config/test_settings.py
from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from peerscope.config import EmptyInstitutionPolicy, Environment, Settings, get_settings

_PEER_ENV = (
    "DATABASE_URL",
    "ENVIRONMENT",
    "LOG_LEVEL",
    "PEER_COUNT",
    "PEER_BATCH_CONCURRENCY",
    "PEER_TOP_N",
    "PEER_EMPTY_INSTITUTION_POLICY",
    "PEER_PERIOD_CACHE_SIZE",
    "PEER_RUN_LOCK_KEY",
    "PROMETHEUS_PUSHGATEWAY_URL",
    "PROMETHEUS_JOB",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    for key in _PEER_ENV:
        monkeypatch.delenv(key, raising=False)
    # Keep any developer .env out of the picture.
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@localhost/peerscope")

    settings = get_settings()

    assert settings.environment is Environment.DEVELOPMENT
    assert settings.peer_count == 10
    assert settings.batch_concurrency == 10
    assert settings.top_n is None
    assert settings.empty_institution_policy is EmptyInstitutionPolicy.SKIP
    assert settings.period_cache_size == 4
    assert settings.log_level == "INFO"
    assert settings.prometheus_pushgateway_url is None
    assert settings.prometheus_job == "peerscope_peer_analysis"
    assert get_settings() is settings


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///peers.db")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("PEER_COUNT", "5")
    monkeypatch.setenv("PEER_BATCH_CONCURRENCY", "3")
    monkeypatch.setenv("PEER_TOP_N", "25")
    monkeypatch.setenv("PEER_EMPTY_INSTITUTION_POLICY", "error")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("PROMETHEUS_PUSHGATEWAY_URL", "pushgateway:9091")

    settings = Settings()  # type: ignore[call-arg]

    assert settings.environment is Environment.TEST
    assert settings.peer_count == 5
    assert settings.batch_concurrency == 3
    assert settings.top_n == 25
    assert settings.empty_institution_policy is EmptyInstitutionPolicy.ERROR
    assert settings.log_level == "DEBUG"
    assert settings.prometheus_pushgateway_url == "pushgateway:9091"


def test_field_names_are_accepted() -> None:
    settings = Settings(database_url="sqlite+aiosqlite:///x.db", peer_count=7)

    assert settings.peer_count == 7


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("PEER_COUNT", "0"),
        ("PEER_BATCH_CONCURRENCY", "0"),
        ("PEER_EMPTY_INSTITUTION_POLICY", "ignore"),
        ("LOG_LEVEL", "chatty"),
    ],
)
def test_invalid_values_are_rejected(
    monkeypatch: pytest.MonkeyPatch, key: str, value: str
) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///x.db")
    monkeypatch.setenv(key, value)

    with pytest.raises(ValidationError):
        Settings()  # type: ignore[call-arg]


def test_missing_database_url_is_a_configuration_error() -> None:
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        get_settings()
