"""Engine and session factory for the relational store."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from plscore.config.settings import DatabaseConfig

from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite issues its own BEGIN lazily and breaks SAVEPOINT; let SQLAlchemy emit them.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def build_engine(config: DatabaseConfig) -> Engine:
    """Create an engine for ``config.url``.

    In-memory SQLite databases share a single connection so every session sees
    the same data.
    """

    kwargs: dict[str, Any] = {"echo": config.echo}
    is_sqlite = config.url.startswith("sqlite")
    if is_sqlite and (":memory:" in config.url or config.url.rstrip("/") == "sqlite:"):
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)

    engine = create_engine(config.url, **kwargs)
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    logger.debug("Created database engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create every table of the schema that does not exist yet."""

    Base.metadata.create_all(engine)
    logger.info("Database schema initialised")


__all__ = ["build_engine", "build_session_factory", "init_db"]
