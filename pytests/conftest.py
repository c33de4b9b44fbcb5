from __future__ import annotations

import os

# Keep test runs from writing ./logs/*.log; must happen before app modules import.
os.environ.setdefault("LOG_TO_FILES", "0")

from typing import Generator

import pytest

from api.auth import issue_token
from app import create_app
from pytests.common import add_organization, create_empty_sqlite_db, patch_app_db


@pytest.fixture(autouse=True)
def _database_mode(monkeypatch):
    """Tests run against a temp SQLite DB unless they opt into mock mode."""

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("UNIVERSAL_MOCK_MODE", raising=False)
    monkeypatch.delenv("DISABLED_PROCEDURES", raising=False)
    monkeypatch.delenv("EDGE_FUNCTION_BASE_URL", raising=False)
    monkeypatch.delenv("DEFAULT_ORGANIZATION_ID", raising=False)
    monkeypatch.setenv("INIT_DB_ON_STARTUP", "0")


@pytest.fixture()
def db_session(tmp_path, monkeypatch) -> Generator:
    session, engine = create_empty_sqlite_db(tmp_path / "test.sqlite")
    patch_app_db(monkeypatch, engine)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def org_id(db_session) -> str:
    return add_organization(db_session, "Acme Test Co", "ACME-TEST")


@pytest.fixture()
def other_org_id(db_session) -> str:
    return add_organization(db_session, "Other Tenant", "OTHER")


@pytest.fixture()
def client(db_session):
    app = create_app()
    app.config.update(TESTING=True)
    return app.test_client()


@pytest.fixture()
def auth_headers(org_id):
    return {"Authorization": f"Bearer {issue_token('user-1', org_id)}"}
