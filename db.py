import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Configure SQLite for concurrent read/write and FK cascades."""
    cursor = dbapi_connection.cursor()
    try:
        # Wait for locks instead of failing immediately.
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


DB_PATH = os.path.join(os.path.dirname(__file__), "data", "universal.db")
MOCK_DATABASE_URL = "mock"


def _resolve_database_url() -> str:
    url = (os.getenv("DATABASE_URL") or "").strip()
    if not url or url == MOCK_DATABASE_URL:
        return f"sqlite:///{DB_PATH}"
    # Hosted Postgres providers still hand out postgres:// URLs.
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def is_mock_mode() -> bool:
    """True when the app should serve static mock rows instead of a database."""

    if (os.getenv("DATABASE_URL") or "").strip() == MOCK_DATABASE_URL:
        return True
    flag = (os.getenv("UNIVERSAL_MOCK_MODE") or "").strip().lower()
    return flag in {"1", "true", "yes", "y", "on"}


def make_engine(url: str):
    if url.startswith("sqlite"):
        db_file = url.replace("sqlite:///", "", 1)
        if db_file and db_file != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_file)), exist_ok=True)
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
        )
        event.listen(eng, "connect", _set_sqlite_pragmas)
        return eng

    return create_engine(url, pool_pre_ping=True, pool_recycle=300)


SQLALCHEMY_DATABASE_URL = _resolve_database_url()

engine = make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
