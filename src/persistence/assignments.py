"""Index binding event versions to the lumisections they apply to."""

from __future__ import annotations

import logging
import sqlite3

from persistence.models import AssignmentRow, LumisectionEventRecord, LumisectionSource
from persistence.sqlite_store import SqliteStore, UnitOfWork


logger = logging.getLogger(__name__)


class SliceAssignmentIndex:
    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def record_event(
        self,
        *,
        version: int,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource,
        document_id: int,
        uow: UnitOfWork,
    ) -> None:
        """Write the lumisection event header anchoring a batch of assignments."""
        uow.conn.execute(
            """
            INSERT INTO lumisection_events (version, run_number, dataset_name, source, document_id)
            VALUES (?, ?, ?, ?, ?)
            """,
            (version, run_number, dataset_name, LumisectionSource(source).value, document_id),
        )

    def assign(
        self,
        *,
        version: int,
        start_lumisection: int,
        end_lumisection: int,
        uow: UnitOfWork,
    ) -> int:
        """Bind ``version`` to every lumisection in the inclusive range.

        The rows are written as one batch: a failure part way leaves none of
        them behind. Returns the number of rows written.
        """
        if start_lumisection < 1:
            raise ValueError(f"Lumisection numbers start at 1, got {start_lumisection}")
        if end_lumisection < start_lumisection:
            raise ValueError(
                f"Empty lumisection range {start_lumisection}..{end_lumisection}"
            )
        rows = [(version, number) for number in range(start_lumisection, end_lumisection + 1)]
        conn = uow.conn
        conn.execute("SAVEPOINT assignment_batch")
        try:
            conn.executemany(
                "INSERT INTO lumisection_assignments (version, lumisection_number) VALUES (?, ?)",
                rows,
            )
        except sqlite3.Error:
            conn.execute("ROLLBACK TO SAVEPOINT assignment_batch")
            conn.execute("RELEASE SAVEPOINT assignment_batch")
            raise
        conn.execute("RELEASE SAVEPOINT assignment_batch")
        logger.debug(
            "Assigned version %s to lumisections %s..%s",
            version,
            start_lumisection,
            end_lumisection,
        )
        return len(rows)

    def assignments_for(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> list[AssignmentRow]:
        """Return every assignment of the dataset ordered by lumisection then version."""
        with self._store.snapshot(conn) as active:
            rows = active.execute(
                """
                SELECT a.lumisection_number, a.version, e.document_id
                  FROM lumisection_events e
                  JOIN lumisection_assignments a ON a.version = e.version
                 WHERE e.run_number = ? AND e.dataset_name = ? AND e.source = ?
                 ORDER BY a.lumisection_number, a.version
                """,
                (run_number, dataset_name, LumisectionSource(source).value),
            ).fetchall()
        return [
            AssignmentRow(
                lumisection_number=int(row["lumisection_number"]),
                version=int(row["version"]),
                document_id=int(row["document_id"]),
            )
            for row in rows
        ]

    def events_for(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
    ) -> list[LumisectionEventRecord]:
        rows = self._store._fetch_all(
            """
            SELECT e.version, e.run_number, e.dataset_name, e.source, e.document_id,
                   MIN(a.lumisection_number) AS start_lumisection,
                   MAX(a.lumisection_number) AS end_lumisection
              FROM lumisection_events e
              JOIN lumisection_assignments a ON a.version = e.version
             WHERE e.run_number = ? AND e.dataset_name = ? AND e.source = ?
             GROUP BY e.version
             ORDER BY e.version
            """,
            (run_number, dataset_name, LumisectionSource(source).value),
        )
        return [_row_to_lumisection_event(row) for row in rows]


def _row_to_lumisection_event(row: sqlite3.Row) -> LumisectionEventRecord:
    return LumisectionEventRecord(
        version=int(row["version"]),
        run_number=int(row["run_number"]),
        dataset_name=row["dataset_name"],
        source=LumisectionSource(row["source"]),
        document_id=int(row["document_id"]),
        start_lumisection=int(row["start_lumisection"]),
        end_lumisection=int(row["end_lumisection"]),
    )


__all__ = ["SliceAssignmentIndex"]
