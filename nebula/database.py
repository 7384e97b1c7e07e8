import logging
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Tuple

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from nebula.config.loader import get_database_settings

logger = logging.getLogger("database")

settings = get_database_settings()
DATABASE_URL: str = settings["url"]
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# Workshop writes arrive in bursts (everyone votes at once); SQLite takes one writer at a time.
_write_lock = threading.RLock()


def _prepare_sqlite_file(url: str) -> None:
    database = make_url(url).database
    if not database or database == ":memory:":
        return
    path = Path(database)
    if not path.is_absolute():
        path = Path.cwd() / path
    path.parent.mkdir(parents=True, exist_ok=True)


def _engine_kwargs(db_settings: Dict[str, Any]) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    if IS_SQLITE:
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": max(1, db_settings["busy_timeout_ms"] / 1000),
        }
        if ":memory:" in DATABASE_URL:
            return kwargs
    kwargs.update(
        pool_size=db_settings["pool_size"],
        max_overflow=db_settings["max_overflow"],
        pool_timeout=db_settings["pool_timeout_seconds"],
        pool_recycle=db_settings["pool_recycle_seconds"],
        pool_use_lifo=True,
    )
    return kwargs


if IS_SQLITE:
    _prepare_sqlite_file(DATABASE_URL)

engine = create_engine(DATABASE_URL, **_engine_kwargs(settings))


@event.listens_for(Engine, "connect")
def _apply_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA journal_mode={settings['journal_mode']}")
        cursor.execute(f"PRAGMA synchronous={settings['synchronous']}")
        cursor.execute(f"PRAGMA busy_timeout={settings['busy_timeout_ms']}")
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _is_locked(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return "database is locked" in message or "database table is locked" in message


class QueuedSession(Session):
    """
    Session that queues SQLite writes behind one lock and retries locked commits.

    A failed flush leaves the transaction unusable, so a retry rolls back and replays the
    pending unit of work: new objects are added again, column edits on dirty objects are
    reapplied and deletes are reissued. Rows flushed before ``commit()`` are lost by that
    rollback, so such transactions are not retried.
    """

    _committing = False
    _flushed_early = False

    def _pending_work(self) -> Tuple[List[Any], List[Tuple[Any, Dict[str, Any]]], List[Any]]:
        edits = []
        for obj in self.dirty:
            state = inspect(obj)
            changed = {
                attr.key: state.attrs[attr.key].value
                for attr in state.mapper.column_attrs
                if state.attrs[attr.key].history.has_changes()
            }
            if changed:
                edits.append((obj, changed))
        return list(self.new), edits, list(self.deleted)

    def _replay(self, work) -> None:
        new, edits, deleted = work
        self.add_all(new)
        for obj, changed in edits:
            for key, value in changed.items():
                setattr(obj, key, value)
        for obj in deleted:
            self.delete(obj)

    def commit(self) -> None:
        attempts = max(1, settings["write_retries"])
        delay = settings["retry_backoff_ms"] / 1000
        with _write_lock:
            for attempt in range(1, attempts + 1):
                work = self._pending_work()
                replayable = not self._flushed_early
                self._committing = True
                try:
                    super().commit()
                    return
                except OperationalError as exc:
                    self.rollback()
                    if not _is_locked(exc) or not replayable or attempt == attempts:
                        raise
                    logger.warning(
                        "Commit hit a locked database (attempt %s of %s), retrying",
                        attempt,
                        attempts,
                    )
                    time.sleep(delay * attempt)
                    self._replay(work)
                finally:
                    self._committing = False
                    self._flushed_early = False

    def rollback(self) -> None:
        self._flushed_early = False
        super().rollback()

    def flush(self, objects=None) -> None:
        with _write_lock:
            super().flush(objects)
            if not self._committing:
                self._flushed_early = True


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=QueuedSession if IS_SQLITE else Session,
)

Base = declarative_base()


def get_db():
    """Request-scoped session for FastAPI dependencies."""
    session_id = uuid.uuid4().hex[:8]
    db = SessionLocal()
    logger.debug("Opened session %s", session_id)
    try:
        yield db
    finally:
        db.close()
        logger.debug("Closed session %s", session_id)
