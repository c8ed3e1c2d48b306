"""Engine/session helpers for the SQL backend.

One process-wide engine holds a bounded connection pool. ``init_engine`` runs
on application startup and ``dispose_engine`` drains the pool on shutdown.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from recetas.core.config import get_settings

Base = declarative_base()

logger = logging.getLogger(__name__)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _register_sqlite_functions(dbapi_connection, connection_record) -> None:
    # built-in lower() only folds ASCII, which breaks ILIKE on accented names
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    url = (settings.database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be configured to use the SQL backend.")
    options = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        engine = create_engine(url, **options)
        event.listen(engine, "connect", _register_sqlite_functions)
        return engine
    options.update(pool_size=settings.db_pool_size, pool_timeout=settings.db_pool_timeout, max_overflow=0)
    return create_engine(url, **options)


@lru_cache
def _get_sessionmaker():
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, future=True, expire_on_commit=False)


@contextmanager
def get_session() -> Iterator[Session]:
    session: Session = _get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def transaction() -> Iterator[Session]:
    """All-or-nothing unit of work: commit on success, rollback on any error.

    The connection goes back to the pool in every case.
    """
    with get_session() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def init_engine(create_tables: bool = False) -> Engine:
    engine = get_engine()
    if create_tables:
        from . import models  # noqa: F401  # registers tables on Base.metadata

        Base.metadata.create_all(bind=engine)
    logger.info("Database pool ready (%s)", engine.url.render_as_string(hide_password=True))
    return engine


def dispose_engine() -> None:
    if get_engine.cache_info().currsize == 0:
        return
    get_engine().dispose()
    get_engine.cache_clear()
    _get_sessionmaker.cache_clear()
    logger.info("Database pool closed")
