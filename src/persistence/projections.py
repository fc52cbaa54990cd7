"""Run and dataset projections derived from their event streams.

Projection rows are never authored directly: every write appends an event and
then recomputes the row from all events of that run (or dataset), merging the
documents last-write-wins per key in version order.
"""

from __future__ import annotations

import json
import math
import sqlite3
from typing import Any, Mapping, Sequence

from lumisections.attributes import merge_documents
from persistence.hashing import stable_json_dumps
from persistence.models import (
    DatasetEventRecord,
    DatasetRecord,
    RunEventRecord,
    RunPage,
    RunRecord,
)
from persistence.run_filters import compile_filter, compile_sortings
from persistence.sqlite_store import SqliteStore, UnitOfWork, from_iso


class RunProjection:
    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def record_event(
        self,
        *,
        version: int,
        run_number: int,
        oms_metadata_id: int,
        rr_metadata_id: int,
        deleted: bool,
        uow: UnitOfWork,
    ) -> RunEventRecord:
        uow.conn.execute(
            """
            INSERT INTO run_events (version, run_number, oms_metadata_id, rr_metadata_id, deleted)
            VALUES (?, ?, ?, ?, ?)
            """,
            (version, run_number, oms_metadata_id, rr_metadata_id, int(deleted)),
        )
        return RunEventRecord(
            version=version,
            run_number=run_number,
            oms_metadata_id=oms_metadata_id,
            rr_metadata_id=rr_metadata_id,
            deleted=deleted,
        )

    def refresh(self, run_number: int, *, uow: UnitOfWork) -> RunRecord:
        rows = uow.conn.execute(
            """
            SELECT r.version, r.deleted, oms.document_json AS oms_json, rr.document_json AS rr_json
              FROM run_events r
              JOIN attribute_documents oms ON oms.document_id = r.oms_metadata_id
              JOIN attribute_documents rr ON rr.document_id = r.rr_metadata_id
             WHERE r.run_number = ?
             ORDER BY r.version
            """,
            (run_number,),
        ).fetchall()
        if not rows:
            raise LookupError(f"Run {run_number} has no events to project")
        record = RunRecord(
            run_number=run_number,
            oms_attributes=merge_documents(json.loads(row["oms_json"]) for row in rows),
            rr_attributes=merge_documents(json.loads(row["rr_json"]) for row in rows),
            deleted=bool(rows[-1]["deleted"]),
            version=int(rows[-1]["version"]),
        )
        uow.conn.execute(
            """
            INSERT INTO runs (run_number, oms_attributes, rr_attributes, deleted, version)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(run_number) DO UPDATE SET
                oms_attributes = excluded.oms_attributes,
                rr_attributes = excluded.rr_attributes,
                deleted = excluded.deleted,
                version = excluded.version
            """,
            (
                record.run_number,
                stable_json_dumps(record.oms_attributes),
                stable_json_dumps(record.rr_attributes),
                int(record.deleted),
                record.version,
            ),
        )
        return record

    def get(self, run_number: int, *, conn: sqlite3.Connection | None = None) -> RunRecord | None:
        with self._store.snapshot(conn) as active:
            row = active.execute(
                "SELECT * FROM runs WHERE run_number = ?", (run_number,)
            ).fetchone()
        return _row_to_run(row) if row else None

    def list_runs(self, *, limit: int | None = None, include_deleted: bool = False) -> list[RunRecord]:
        query = "SELECT * FROM runs"
        if not include_deleted:
            query += " WHERE deleted = 0"
        query += " ORDER BY run_number DESC"
        params: tuple[object, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [_row_to_run(row) for row in self._store._fetch_all(query, params)]

    def filter_runs(
        self,
        filter_document: Mapping[str, Any] | None = None,
        *,
        sortings: Sequence[Sequence[str]] | None = None,
        page: int = 0,
        page_size: int = 50,
        significant_only: bool = False,
    ) -> RunPage:
        """Return one page of non-deleted runs matching ``filter_document``.

        See :mod:`persistence.run_filters` for the filter grammar.
        """
        if page < 0 or page_size < 1:
            raise ValueError("page must be >= 0 and page_size >= 1")
        where, params = compile_filter(filter_document)
        where = f"deleted = 0 AND ({where})"
        if significant_only:
            where += " AND json_extract(rr_attributes, '$.significant') = 1"
        order_by, order_params = compile_sortings(sortings)
        with self._store.snapshot() as conn:
            count = int(
                conn.execute(f"SELECT COUNT(*) FROM runs WHERE {where}", params).fetchone()[0]
            )
            rows = conn.execute(
                f"SELECT * FROM runs WHERE {where} ORDER BY {order_by} LIMIT ? OFFSET ?",
                [*params, *order_params, page_size, page * page_size],
            ).fetchall()
        return RunPage(
            runs=[_row_to_run(row) for row in rows],
            count=count,
            pages=math.ceil(count / page_size),
            page=page,
            page_size=page_size,
        )

    def history(self, run_number: int) -> list[dict[str, Any]]:
        """Return each run event with its documents and authorship, oldest first."""
        rows = self._store._fetch_all(
            """
            SELECT r.version, r.run_number, r.deleted, e.actor, e.comment, e.created_at,
                   oms.document_json AS oms_json, rr.document_json AS rr_json
              FROM run_events r
              JOIN events e ON e.version = r.version
              JOIN attribute_documents oms ON oms.document_id = r.oms_metadata_id
              JOIN attribute_documents rr ON rr.document_id = r.rr_metadata_id
             WHERE r.run_number = ?
             ORDER BY r.version
            """,
            (run_number,),
        )
        return [
            {
                "run_number": int(row["run_number"]),
                "version": int(row["version"]),
                "deleted": bool(row["deleted"]),
                "actor": row["actor"],
                "comment": row["comment"],
                "created_at": from_iso(row["created_at"]).isoformat(),
                "oms_metadata": json.loads(row["oms_json"]),
                "rr_metadata": json.loads(row["rr_json"]),
            }
            for row in rows
        ]


class DatasetProjection:
    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def record_event(
        self,
        *,
        version: int,
        run_number: int,
        dataset_name: str,
        metadata_id: int,
        deleted: bool,
        uow: UnitOfWork,
    ) -> DatasetEventRecord:
        uow.conn.execute(
            """
            INSERT INTO dataset_events (version, run_number, dataset_name, metadata_id, deleted)
            VALUES (?, ?, ?, ?, ?)
            """,
            (version, run_number, dataset_name, metadata_id, int(deleted)),
        )
        return DatasetEventRecord(
            version=version,
            run_number=run_number,
            dataset_name=dataset_name,
            metadata_id=metadata_id,
            deleted=deleted,
        )

    def refresh(self, run_number: int, dataset_name: str, *, uow: UnitOfWork) -> DatasetRecord:
        rows = uow.conn.execute(
            """
            SELECT d.version, d.deleted, doc.document_json
              FROM dataset_events d
              JOIN attribute_documents doc ON doc.document_id = d.metadata_id
             WHERE d.run_number = ? AND d.dataset_name = ?
             ORDER BY d.version
            """,
            (run_number, dataset_name),
        ).fetchall()
        if not rows:
            raise LookupError(f"Dataset {dataset_name} of run {run_number} has no events to project")
        record = DatasetRecord(
            run_number=run_number,
            dataset_name=dataset_name,
            dataset_attributes=merge_documents(json.loads(row["document_json"]) for row in rows),
            deleted=bool(rows[-1]["deleted"]),
            version=int(rows[-1]["version"]),
        )
        uow.conn.execute(
            """
            INSERT INTO datasets (run_number, dataset_name, dataset_attributes, deleted, version)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(run_number, dataset_name) DO UPDATE SET
                dataset_attributes = excluded.dataset_attributes,
                deleted = excluded.deleted,
                version = excluded.version
            """,
            (
                record.run_number,
                record.dataset_name,
                stable_json_dumps(record.dataset_attributes),
                int(record.deleted),
                record.version,
            ),
        )
        return record

    def get(
        self,
        run_number: int,
        dataset_name: str,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> DatasetRecord | None:
        with self._store.snapshot(conn) as active:
            row = active.execute(
                "SELECT * FROM datasets WHERE run_number = ? AND dataset_name = ?",
                (run_number, dataset_name),
            ).fetchone()
        return _row_to_dataset(row) if row else None

    def list_for_run(self, run_number: int) -> list[DatasetRecord]:
        rows = self._store._fetch_all(
            "SELECT * FROM datasets WHERE run_number = ? ORDER BY dataset_name",
            (run_number,),
        )
        return [_row_to_dataset(row) for row in rows]


def _row_to_run(row: sqlite3.Row) -> RunRecord:
    return RunRecord(
        run_number=int(row["run_number"]),
        oms_attributes=json.loads(row["oms_attributes"]),
        rr_attributes=json.loads(row["rr_attributes"]),
        deleted=bool(row["deleted"]),
        version=int(row["version"]),
    )


def _row_to_dataset(row: sqlite3.Row) -> DatasetRecord:
    return DatasetRecord(
        run_number=int(row["run_number"]),
        dataset_name=row["dataset_name"],
        dataset_attributes=json.loads(row["dataset_attributes"]),
        deleted=bool(row["deleted"]),
        version=int(row["version"]),
    )


__all__ = ["DatasetProjection", "RunProjection"]
