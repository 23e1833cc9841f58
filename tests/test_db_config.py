"""
tests/test_db_config.py

Database URL resolution for the SQL dataset store.
"""

from __future__ import annotations

import pytest

from db.config import is_postgres_url, normalize_database_url, resolve_database_url
from db.session import create_db_engine

_URL_ENV_VARS = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL", "ENVIRONMENT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _URL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgresql://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgresql+psycopg://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("sqlite:///datasets.db", "sqlite:///datasets.db"),
    ],
)
def test_normalize_database_url(url: str, expected: str) -> None:
    assert normalize_database_url(url) == expected


def test_direct_url_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgres://direct/db")
    monkeypatch.setenv("LOCAL_DATABASE_URL", "sqlite:///local.db")

    assert resolve_database_url() == "postgresql+psycopg://direct/db"


def test_cloud_url_only_in_cloud_environments(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUD_DATABASE_URL", "postgresql://cloud/db")
    monkeypatch.setenv("LOCAL_DATABASE_URL", "sqlite:///local.db")

    assert resolve_database_url() == "sqlite:///local.db"

    monkeypatch.setenv("ENVIRONMENT", "Production")
    assert resolve_database_url() == "postgresql+psycopg://cloud/db"


def test_missing_url_raises() -> None:
    with pytest.raises(RuntimeError, match="DATASET_STORE_BACKEND=file"):
        resolve_database_url()


def test_sqlite_engine_skips_pool_sizing() -> None:
    engine = create_db_engine("sqlite://")

    assert not is_postgres_url(str(engine.url))
    assert engine.dialect.name == "sqlite"
