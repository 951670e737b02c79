"""
Module: recurrence_kernel.db.engine
Responsibility: Build the SQLAlchemy engine for a URL, hold the process-wide
    engine and session factory, and provide a commit-or-rollback scope.
Architecture position: Kernel > DB.  Imports db/base.py and, lazily, the
    models package so its tables register before create_all.

Invariants enforced:
    - SQLite connections run with foreign keys on and with SQLAlchemy
      (not pysqlite) issuing BEGIN, so SAVEPOINTs behave.
    - ``sqlite://`` and ``:memory:`` URLs share one connection (StaticPool);
      otherwise each session would see its own empty database.
    - PostgreSQL uses READ COMMITTED.  Duplicate materialization is stopped
      by the unique constraint on (owner, series key, period key).

Failure modes:
    - RuntimeError from get_engine/get_session before init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from recurrence_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_IN_MEMORY_URLS = frozenset({"sqlite://", "sqlite+pysqlite://"})

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False, **pool_kwargs) -> Engine:
    """
    Engine for ``database_url``; module state is left alone.

    ``pool_kwargs`` (pool_size, max_overflow, pool_timeout, ...) apply to
    server databases only.
    """
    if not database_url.startswith("sqlite"):
        pool_kwargs.setdefault("pool_pre_ping", True)
        pool_kwargs.setdefault("pool_recycle", 1800)
        return create_engine(
            database_url,
            echo=echo,
            isolation_level="READ COMMITTED",
            **pool_kwargs,
        )

    options: dict = {}
    if database_url in _IN_MEMORY_URLS or ":memory:" in database_url:
        options = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_engine(database_url, echo=echo, **options)
    _install_sqlite_hooks(engine)
    return engine


def init_engine_from_url(database_url: str, echo: bool = False, **pool_kwargs) -> Engine:
    """Replace the process-wide engine and session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(database_url, echo=echo, **pool_kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session that commits when the block exits cleanly.

    Any exception rolls the session back and is re-raised; the session is
    closed either way.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from recurrence_kernel.db.base import Base
    import recurrence_kernel.models  # noqa: F401

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    metadata = _metadata()
    metadata.create_all(engine or get_engine())
    logger.info("tables_created", extra={"tables": sorted(metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every recurrence table.  Tests only."""
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
