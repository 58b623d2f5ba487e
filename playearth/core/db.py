from __future__ import annotations

from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings


Base = declarative_base()


def _ensure_parent_directory(db_url: str) -> None:
    if db_url.startswith("sqlite:///") and ":memory:" not in db_url:
        file_path = db_url.split("sqlite:///")[-1]
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def _sqlite_driver_autocommit(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    # SQLAlchemy emits BEGIN itself so SAVEPOINTs nest correctly
    dbapi_connection.isolation_level = None


def _sqlite_begin(conn) -> None:  # type: ignore[no-untyped-def]
    conn.exec_driver_sql("BEGIN")


def enable_sqlite_savepoints(eng: Engine) -> None:
    event.listen(eng, "connect", _sqlite_driver_autocommit)
    event.listen(eng, "begin", _sqlite_begin)


def make_engine(db_url: str) -> Engine:
    """Engine for Supabase Postgres in production, SQLite locally."""
    if db_url.startswith("postgres://"):
        # Supabase hands out the legacy scheme
        db_url = "postgresql://" + db_url[len("postgres://"):]
    if db_url.startswith("sqlite"):
        _ensure_parent_directory(db_url)
        eng = create_engine(db_url, connect_args={"check_same_thread": False})
        event.listen(eng, "connect", _set_sqlite_pragmas)
        enable_sqlite_savepoints(eng)
        return eng
    return create_engine(db_url, pool_pre_ping=True)


engine = make_engine(get_settings().database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine | None = None) -> None:
    # model modules register their tables on Base.metadata when imported
    from playearth.models import action, activity, feedback, points_ledger, profile, quest, self_declare_limit  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
