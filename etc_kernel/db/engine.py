"""
Module: etc_kernel.db.engine
Responsibility: SQLAlchemy engine creation, session factory construction and
    transactional scope utilities.
Architecture position: Kernel > DB.  May import from db/base.py (create_tables
    also imports the model packages so their tables are registered).  Holds no
    module-level engine: callers build one from settings and pass it on.

Invariants enforced:
    - SAVEPOINT support on SQLite.  pysqlite's implicit transaction handling
      breaks ``Session.begin_nested()``; the connect/begin hooks below hand
      transaction control back to SQLAlchemy.
    - Connection pooling with pre-ping for server backends.

Failure modes:
    - sqlalchemy.exc.ArgumentError on a malformed URL.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from etc_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _install_sqlite_savepoint_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for ``database_url``.

    SQLite URLs skip the pool sizing arguments and get the savepoint hooks;
    every other backend gets a pre-pinged QueuePool.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
        _install_sqlite_savepoint_hooks(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory that keeps loaded attributes after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(
    factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    On normal exit the session is committed and closed.  On exception it is
    rolled back and closed, and the exception is re-raised.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create every table registered on ``Base.metadata``.

    Imports the model modules first so their tables are known.
    """
    from etc_kernel.db.base import Base
    import etc_ingestion.models  # noqa: F401
    import etc_mapping.models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info(
        "tables_created",
        extra={"tables": sorted(Base.metadata.tables)},
    )


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from etc_kernel.db.base import Base

    Base.metadata.drop_all(engine)
