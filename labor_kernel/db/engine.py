"""
Module: labor_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the reporting engine.
Architecture position: Kernel > DB.  Imports only db/base.py.  Callers must
    import every ORM module before ``create_tables()`` so that
    ``Base.metadata`` knows all tables (see labor_services.bootstrap).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit row locks
      (``SELECT ... FOR UPDATE``) on batch rows and sequence counters.
    - SQLite (tests, local tooling) uses a plain engine with driver-level
      transaction handling disabled so nested SAVEPOINTs work; row locks
      are no-ops there and writes are serialized by the database file lock.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from labor_kernel.db.base import Base
from labor_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call replaces the previous engine.

    Args:
        database_url: SQLAlchemy URL (postgresql://... or sqlite://...).
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL only).
        max_overflow: Connections beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test connections before use (PostgreSQL only).
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    if database_url.startswith("sqlite"):
        dialect = "sqlite"
        _engine = create_engine(database_url, echo=echo)
        _enable_sqlite_savepoints(_engine)
    else:
        dialect = "postgresql"
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo},
    )
    return _engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside the transaction."""

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """Get a new session bound to the current engine."""
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory.

    Useful for multi-threaded callers where each thread needs its own session.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception.

    Usage:
        with session_scope() as session:
            ReportingService(session, ...).generate_events(2024, 3)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table registered on ``Base.metadata``."""
    Base.metadata.create_all(get_engine())
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables() -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
