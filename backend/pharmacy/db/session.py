"""Database engine, sessions and the unit-of-work retry policy.

Two kinds of session exist:

* ``SessionLocal()`` sessions from ``get_db`` - plain request sessions used for
  reads and single-row CRUD.
* ``run_in_transaction(work)`` - a serializable unit of work for anything that
  moves stock (sales, purchases). Each attempt gets a fresh session; transient
  store failures roll back and re-run ``work`` from scratch.

SQLite has no row locks, so units of work there open with ``BEGIN IMMEDIATE``,
which takes the database write lock before the first read. WAL journaling lets
request sessions keep reading while a unit of work holds that lock.
"""
import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from pharmacy.core.config import settings
from pharmacy.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Execution option marking a connection that must lock before its first read.
UNIT_OF_WORK = "pharmacy_unit_of_work"

# serialization_failure, deadlock_detected, lock_not_available, query_canceled (statement/lock timeout)
_TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03", "57014"}


def _install_sqlite_locking(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's implicit one.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(UNIT_OF_WORK):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # SQLite: NullPool for thread-safety; busy timeout doubles as the lock wait.
        from sqlalchemy.pool import NullPool
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.DB_LOCK_TIMEOUT_MS / 1000,
            },
            poolclass=NullPool,
        )
        _install_sqlite_locking(engine)
        return engine

    # PostgreSQL: QueuePool with sensible defaults
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def begin_unit_of_work(db: Session) -> None:
    """Open the session's transaction with serializable semantics.

    Must run before anything else touches the session.
    """
    options = {UNIT_OF_WORK: True}
    if db.get_bind().dialect.name != "sqlite":
        options["isolation_level"] = "SERIALIZABLE"
    db.connection(execution_options=options)


def is_transient(exc: BaseException) -> bool:
    """True for failures that say nothing about the request itself."""
    if isinstance(exc, TransientStoreError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _TRANSIENT_SQLSTATES:
        return True
    if isinstance(exc, OperationalError):
        message = str(orig).lower()
        return "database is locked" in message or "database is busy" in message
    return False


def run_in_transaction(
    work: Callable[[Session], T],
    *,
    session_factory: Optional[sessionmaker] = None,
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``work(db)`` in a serializable transaction, retrying transient failures.

    ``work`` is re-executed from scratch on every attempt, so it must derive
    everything from its arguments. Whatever it returns should be plain data:
    the session is closed before this function returns.
    """
    factory = session_factory or SessionLocal
    attempts = attempts or settings.DB_RETRY_ATTEMPTS
    backoff = settings.DB_RETRY_BACKOFF_SECONDS if backoff is None else backoff
    max_delay = settings.DB_RETRY_MAX_DELAY_SECONDS if max_delay is None else max_delay

    for attempt in range(1, attempts + 1):
        db = factory()
        try:
            begin_unit_of_work(db)
            result = work(db)
            db.commit()
            return result
        except Exception as exc:
            db.rollback()
            if not is_transient(exc):
                raise
            if attempt >= attempts:
                logger.error(f"Unit of work failed after {attempts} attempts: {exc}")
                if isinstance(exc, TransientStoreError):
                    raise
                raise TransientStoreError(
                    "The database is busy. Please retry the request.",
                    attempts=attempts,
                ) from exc
            delay = min(backoff * (2 ** (attempt - 1)), max_delay)
            logger.warning(
                f"Transient store failure on attempt {attempt}/{attempts}, retrying in {delay:.2f}s: {exc}"
            )
            sleep(delay)
        finally:
            db.close()

    raise AssertionError("unreachable")
