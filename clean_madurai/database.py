from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clean_madurai.config import settings


def _sqlite_connect_args(url: str) -> dict:
    if url.startswith("sqlite:"):
        # timeout is in seconds for sqlite3.connect(); helps transient lock contention.
        return {"check_same_thread": False, "timeout": 60}
    return {}


def make_engine(url: str) -> Engine:
    kwargs: dict = {"connect_args": _sqlite_connect_args(url), "pool_pre_ping": True}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # Single shared connection so every session sees the same in-memory database.
        kwargs["poolclass"] = StaticPool
    eng = create_engine(url, **kwargs)

    # SQLite concurrency tuning:
    # - WAL lets dashboards read while a complaint update is being written.
    # - busy_timeout makes writes wait instead of failing fast with "database is locked".
    if url.startswith("sqlite:"):
        @event.listens_for(eng, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
            cur = dbapi_connection.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
                cur.execute("PRAGMA foreign_keys=ON;")
                cur.execute("PRAGMA busy_timeout=60000;")  # ms
            finally:
                cur.close()

    return eng


engine = make_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


_store = None


def get_store():
    """FastAPI dependency: the process-wide SQL-backed document store."""
    global _store
    if _store is None:
        from clean_madurai.services.document_store import SqlDocumentStore

        _store = SqlDocumentStore(SessionLocal)
    return _store
