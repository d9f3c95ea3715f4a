"""Database engine bootstrap, session factory and the per-row record store.

Each data row runs inside its own SAVEPOINT, so a failing row rolls back
alone and the run's outer transaction stays usable for the rows that follow.
"""

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, event, inspect as sa_inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction, sessionmaker

from modelshift.core.errors import PersistenceFailure

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def make_engine(db_url: str) -> Engine:
    """Create an engine; SQLite gets pragmas and working SAVEPOINTs."""
    engine = create_engine(db_url, echo=False, future=True)

    if db_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_conn, _rec):
            # Hand transaction control to SQLAlchemy so SAVEPOINT works.
            dbapi_conn.isolation_level = None
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def init_db(db_url: str, base: Any = None) -> Engine:
    """Create the engine and session factory; emit CREATE TABLE for ``base``."""
    global _engine, _SessionLocal

    _engine = make_engine(db_url)
    if base is not None:
        base.metadata.create_all(_engine)
    _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("Database engine initialized")
    return _engine


def close_db() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        _engine = None
        _SessionLocal = None
        logger.info("Database engine disposed")


def get_session() -> Session:
    """Return a new session. Caller is responsible for .close()."""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialised - call init_db() first")
    return _SessionLocal()


def check_connection() -> bool:
    """Check if the database is reachable."""
    try:
        with get_session() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


class RecordStore:
    """Persists records within a run-wide transaction, one SAVEPOINT per row.

    ``begin_row()`` must be called while the row's record is still transient:
    opening a SAVEPOINT flushes pending changes first, and those would
    otherwise land in the outer transaction. Every flush for the row,
    including an early save of a new record, then rolls back together when
    a save fails.
    """

    def __init__(self, session: Session):
        self.session = session
        self._row: Optional[SessionTransaction] = None

    def is_new(self, record: Any) -> bool:
        state = sa_inspect(record)
        return state.transient or state.pending

    def begin_row(self) -> None:
        self._close_row()
        self._row = self.session.begin_nested()

    def end_row(self) -> None:
        self._close_row()

    def _close_row(self) -> None:
        row, self._row = self._row, None
        if row is None:
            return
        if row.is_active:
            row.commit()
        else:
            row.rollback()

    def _discard_row(self, record: Any) -> None:
        row, self._row = self._row, None
        if row is not None:
            row.rollback()
        if record in self.session:
            self.session.expunge(record)

    def save(self, record: Any) -> None:
        """Flush ``record`` inside the current row.

        On failure the row's SAVEPOINT is rolled back, the record is detached
        and a fresh SAVEPOINT is opened for the rest of the row.
        """
        in_row = self._row is not None
        if not in_row:
            self.begin_row()
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as e:
            self._discard_row(record)
            if in_row:
                self.begin_row()
            raise PersistenceFailure(
                f"Error saving {type(record).__name__}: {e}"
            ) from e
        if not in_row:
            self.end_row()

    def commit(self) -> None:
        self._close_row()
        self.session.commit()

    def rollback(self) -> None:
        self._row = None
        self.session.rollback()
