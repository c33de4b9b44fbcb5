"""Shared helpers for tests.

Intended usage:
- spin up a temporary SQLite database
- create all SQLAlchemy tables
- point the app's `db.engine` / `db.SessionLocal` at it

These utilities keep tests small and consistent.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import db
from models import Base
from models.organizations import Organization

__all__ = [
    "create_empty_sqlite_db",
    "patch_app_db",
    "add_organization",
]


def create_empty_sqlite_db(db_path: Path) -> tuple[Session, Engine]:
    """Create an empty SQLite DB file and initialize all models.

    The engine gets the same pragmas the app uses (FKs on).
    Returns (session, engine).
    """

    engine = db.make_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    return SessionLocal(), engine


def patch_app_db(monkeypatch, engine: Engine) -> None:
    """Route every `db.SessionLocal()` call in app code to `engine`."""

    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(
        db, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )


def add_organization(session: Session, name: str = "Test Org", code: str | None = None) -> str:
    org = Organization(organization_name=name, organization_code=code)
    session.add(org)
    session.commit()
    return org.id
