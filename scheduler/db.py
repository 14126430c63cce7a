"""Engine, session factory and transaction boundary."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from scheduler.repos.tables import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the engine and hands out sessions.

    ``transaction()`` is the unit of atomicity for schedule mutations: it
    commits on normal exit and rolls back on any exception, re-raising it.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with self._sessions.begin() as session:
            session.connection(execution_options={"sqlite_immediate": True})
            yield session

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Plain session for read queries; nothing is committed.

        On SQLite it opens a deferred transaction, so concurrent readers share
        the database and only writers queue for the lock.
        """
        with self._sessions() as session:
            yield session

    def dispose(self) -> None:
        self.engine.dispose()


def _install_sqlite_locking(engine: Engine) -> None:
    # pysqlite's own BEGIN handling is disabled. Write transactions start with
    # BEGIN IMMEDIATE and hold the write lock for their whole span; reads use
    # a plain deferred BEGIN.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get("sqlite_immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_database(url: str, echo: bool = False, create_schema: bool = True) -> Database:
    """Build a ``Database`` for *url* and create missing tables."""
    kwargs: dict = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        _install_sqlite_locking(engine)

    database = Database(engine)
    if create_schema:
        database.create_all()
    logger.info("database ready (%s)", engine.url.render_as_string(hide_password=True))
    return database
