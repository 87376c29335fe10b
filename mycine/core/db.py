"""Database engine and session helpers."""

from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from mycine.core.config import settings


def enable_sqlite_savepoints(target: Engine) -> Engine:
    """Let pysqlite honour SAVEPOINT by emitting BEGIN ourselves.

    Transactions start with ``BEGIN IMMEDIATE`` so concurrent writers queue on
    the database lock instead of failing to upgrade a shared lock.
    """

    @event.listens_for(target, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return target


_connect_args = {"check_same_thread": False} if settings.db_url.startswith("sqlite") else {}
engine = create_engine(settings.db_url, connect_args=_connect_args)
if settings.db_url.startswith("sqlite"):
    enable_sqlite_savepoints(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    with Session(engine) as session:
        yield session
