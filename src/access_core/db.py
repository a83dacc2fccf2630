"""
Database helpers shared by the access services.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import AppConfig

logger = logging.getLogger(__name__)

_engine = None
_session_factory: sessionmaker | None = None
_scoped_session: scoped_session | None = None


def init_engine(config: AppConfig):
    """
    Initialize a SQLAlchemy engine and session factory using the given config.

    The engine is stored as a module-level singleton so that every blueprint
    reuses the same connection pool.
    """
    global _engine, _session_factory, _scoped_session

    if _engine is None:
        database_url = os.getenv("DATABASE_URL") or config.sqlalchemy_uri
        engine_kwargs: dict[str, Any] = {
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
            "pool_recycle": 3600,
        }

        if database_url.startswith("sqlite"):
            engine_kwargs = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }

        _engine = create_engine(database_url, **engine_kwargs)

        if database_url.startswith("sqlite"):

            @event.listens_for(_engine, "connect")
            def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        @event.listens_for(_engine, "before_cursor_execute")
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault("query_start_time", []).append(time.time())

        @event.listens_for(_engine, "after_cursor_execute")
        def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            total = time.time() - conn.info["query_start_time"].pop(-1)
            if total > 1.0:
                logger.warning(f"Slow query detected ({total:.2f}s): {statement[:200]}...")

        _session_factory = sessionmaker(
            bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False
        )
        _scoped_session = scoped_session(_session_factory)

    return _engine


def get_engine():
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_engine first.")
    return _engine


def init_db(metadata) -> None:
    """
    Ensure all tables declared on the provided metadata exist in the database.
    """
    engine = get_engine()
    try:
        metadata.create_all(engine)
        logger.info("Database schema created successfully")
    except OperationalError as exc:
        logger.error(f"Could not create database schema: {exc}")
        raise


def check_connection() -> bool:
    """Run a trivial query; used by the health endpoints."""
    if _engine is None:
        return False
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.warning(f"Database connectivity check failed: {exc}")
        return False


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Yields a session and automatically rolls back when an exception occurs. It
    commits by default and always ensures the session is removed from the scoped
    registry afterwards. Do not nest: the scoped registry hands back the same
    session on the same thread.
    """
    if _scoped_session is None:
        raise RuntimeError("Session factory unavailable. Call init_engine first.")

    session: Session = _scoped_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        _scoped_session.remove()
