"""SQLite-backed event store: schema, connections and units of work."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from core.errors import TransactionConflictError


logger = logging.getLogger(__name__)

_SCHEMA = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS event_sequence (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_version INTEGER NOT NULL
);
INSERT OR IGNORE INTO event_sequence (id, last_version) VALUES (1, 0);

CREATE TABLE IF NOT EXISTS events (
    version INTEGER PRIMARY KEY,
    actor TEXT NOT NULL,
    comment TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS attribute_documents (
    document_id INTEGER PRIMARY KEY AUTOINCREMENT,
    content_hash TEXT NOT NULL,
    document_json TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_attribute_documents_hash ON attribute_documents(content_hash);

CREATE TABLE IF NOT EXISTS lumisection_events (
    version INTEGER PRIMARY KEY,
    run_number INTEGER NOT NULL,
    dataset_name TEXT NOT NULL,
    source TEXT NOT NULL,
    document_id INTEGER NOT NULL,
    FOREIGN KEY(version) REFERENCES events(version),
    FOREIGN KEY(document_id) REFERENCES attribute_documents(document_id)
);
CREATE INDEX IF NOT EXISTS idx_lumisection_events_dataset
    ON lumisection_events(run_number, dataset_name, source);

CREATE TABLE IF NOT EXISTS lumisection_assignments (
    version INTEGER NOT NULL,
    lumisection_number INTEGER NOT NULL CHECK (lumisection_number >= 1),
    PRIMARY KEY(version, lumisection_number),
    FOREIGN KEY(version) REFERENCES lumisection_events(version)
);
CREATE INDEX IF NOT EXISTS idx_lumisection_assignments_number
    ON lumisection_assignments(lumisection_number, version);

CREATE TABLE IF NOT EXISTS run_events (
    version INTEGER PRIMARY KEY,
    run_number INTEGER NOT NULL,
    oms_metadata_id INTEGER NOT NULL,
    rr_metadata_id INTEGER NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY(version) REFERENCES events(version),
    FOREIGN KEY(oms_metadata_id) REFERENCES attribute_documents(document_id),
    FOREIGN KEY(rr_metadata_id) REFERENCES attribute_documents(document_id)
);
CREATE INDEX IF NOT EXISTS idx_run_events_run_number ON run_events(run_number, version);

CREATE TABLE IF NOT EXISTS runs (
    run_number INTEGER PRIMARY KEY,
    oms_attributes TEXT NOT NULL,
    rr_attributes TEXT NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS dataset_events (
    version INTEGER PRIMARY KEY,
    run_number INTEGER NOT NULL,
    dataset_name TEXT NOT NULL,
    metadata_id INTEGER NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY(version) REFERENCES events(version),
    FOREIGN KEY(metadata_id) REFERENCES attribute_documents(document_id)
);
CREATE INDEX IF NOT EXISTS idx_dataset_events_dataset
    ON dataset_events(run_number, dataset_name, version);

CREATE TABLE IF NOT EXISTS datasets (
    run_number INTEGER NOT NULL,
    dataset_name TEXT NOT NULL,
    dataset_attributes TEXT NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    version INTEGER NOT NULL,
    PRIMARY KEY(run_number, dataset_name)
);
"""

_LOCKED_MARKERS = ("database is locked", "database is busy", "database table is locked")


class UnitOfWork:
    """One write transaction holding the database write lock.

    Versions handed out by :meth:`allocate_version` are persisted to the
    sequence even when the work is rolled back, so a number is never reused.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.committed = False
        self.rolled_back = False
        self._last_version: int | None = None
        self._versions: list[int] = []
        self._on_commit: list[Callable[[], None]] = []
        self._on_rollback: list[Callable[[], None]] = []

    @property
    def versions(self) -> tuple[int, ...]:
        return tuple(self._versions)

    def allocate_version(self) -> int:
        if self._last_version is None:
            row = self.conn.execute(
                "SELECT last_version FROM event_sequence WHERE id = 1"
            ).fetchone()
            self._last_version = int(row[0]) if row else 0
        self._last_version += 1
        self._versions.append(self._last_version)
        return self._last_version

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the transaction has committed."""
        self._on_commit.append(callback)

    def on_rollback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` if the transaction is rolled back."""
        self._on_rollback.append(callback)

    def _persist_sequence(self) -> None:
        if self._last_version is None:
            return
        self.conn.execute(
            "UPDATE event_sequence SET last_version = MAX(last_version, ?) WHERE id = 1",
            (self._last_version,),
        )

    def _run_commit_callbacks(self) -> None:
        callbacks, self._on_commit, self._on_rollback = self._on_commit, [], []
        _run_callbacks(callbacks, "commit")

    def _run_rollback_callbacks(self) -> None:
        callbacks, self._on_commit, self._on_rollback = self._on_rollback, [], []
        _run_callbacks(callbacks, "rollback")


class SqliteStore:
    def __init__(self, path: str | Path, *, busy_timeout: float = 5.0) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._busy_timeout = busy_timeout
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._path,
            timeout=self._busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _initialize(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA)
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        """Open a write transaction; everything inside commits or rolls back together."""
        conn = self._connect()
        try:
            _execute_locking(conn, "BEGIN IMMEDIATE")
            uow = UnitOfWork(conn)
            conn.execute("SAVEPOINT unit_of_work")
            try:
                yield uow
            except BaseException as exc:
                _rollback_keeping_sequence(uow)
                uow.rolled_back = True
                logger.debug("Rolled back unit of work (versions %s): %s", uow.versions, exc)
                uow._run_rollback_callbacks()
                if isinstance(exc, sqlite3.OperationalError) and _is_locked(exc):
                    raise TransactionConflictError(str(exc)) from exc
                raise
            conn.execute("RELEASE SAVEPOINT unit_of_work")
            uow._persist_sequence()
            try:
                _execute_locking(conn, "COMMIT")
            except (sqlite3.Error, TransactionConflictError) as exc:
                _persist_sequence_separately(uow)
                uow.rolled_back = True
                logger.warning("Commit failed (versions %s): %s", uow.versions, exc)
                uow._run_rollback_callbacks()
                raise
            uow.committed = True
        finally:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            conn.close()
        uow._run_commit_callbacks()

    @contextmanager
    def snapshot(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Yield a connection with a consistent read view.

        An open write connection is reused as is, so reads inside a unit of
        work observe its own uncommitted rows.
        """
        if conn is not None:
            yield conn
            return
        owned = self._connect()
        try:
            owned.execute("BEGIN")
            yield owned
            owned.execute("COMMIT")
        finally:
            if owned.in_transaction:
                owned.execute("ROLLBACK")
            owned.close()

    def _fetch_one(self, query: str, params: tuple[object, ...] = ()) -> sqlite3.Row | None:
        with self.snapshot() as conn:
            return conn.execute(query, params).fetchone()

    def _fetch_all(self, query: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        with self.snapshot() as conn:
            return conn.execute(query, params).fetchall()

    def last_version(self) -> int:
        row = self._fetch_one("SELECT last_version FROM event_sequence WHERE id = 1")
        return int(row["last_version"]) if row else 0


def _rollback_keeping_sequence(uow: UnitOfWork) -> None:
    conn = uow.conn
    try:
        conn.execute("ROLLBACK TO SAVEPOINT unit_of_work")
        conn.execute("RELEASE SAVEPOINT unit_of_work")
        uow._persist_sequence()
        conn.execute("COMMIT")
    except sqlite3.Error:
        logger.warning("Could not persist burned versions %s; retrying separately", uow.versions)
        _persist_sequence_separately(uow)


def _persist_sequence_separately(uow: UnitOfWork) -> None:
    """Roll back whatever is open, then record the consumed versions on their own."""
    conn = uow.conn
    if conn.in_transaction:
        conn.execute("ROLLBACK")
    if not uow.versions:
        return
    try:
        _execute_locking(conn, "BEGIN IMMEDIATE")
        uow._persist_sequence()
        conn.execute("COMMIT")
    except (sqlite3.Error, TransactionConflictError):
        logger.exception("Could not persist burned versions %s", uow.versions)
        if conn.in_transaction:
            conn.execute("ROLLBACK")


def _run_callbacks(callbacks: list[Callable[[], None]], phase: str) -> None:
    # The transaction outcome is final here; one failing callback must not skip the rest.
    for callback in callbacks:
        try:
            callback()
        except Exception:
            logger.exception("Error in %s callback %r", phase, callback)


def _execute_locking(conn: sqlite3.Connection, statement: str) -> None:
    try:
        conn.execute(statement)
    except sqlite3.OperationalError as exc:
        if _is_locked(exc):
            raise TransactionConflictError(f"{statement} failed: {exc}") from exc
        raise


def _is_locked(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _LOCKED_MARKERS)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


__all__ = ["SqliteStore", "UnitOfWork", "from_iso", "now_iso"]
