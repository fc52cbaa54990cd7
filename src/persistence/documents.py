"""Content-addressed deduplication store for attribute documents."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Iterable, Mapping

from core.errors import DocumentInternFailure
from persistence.hashing import canonical_value, document_hash, stable_json_dumps
from persistence.models import AttributeDocumentRecord
from persistence.sqlite_store import SqliteStore, UnitOfWork


logger = logging.getLogger(__name__)


class DocumentStore:
    """Interns attribute documents so equal documents share one identifier.

    The UNIQUE index on ``content_hash`` is the arbiter under contention: a
    writer that loses the insert race reads back the winner's row instead of
    failing.
    """

    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def intern(self, document: Mapping[str, Any], *, uow: UnitOfWork | None = None) -> int:
        if uow is None:
            with self._store.transaction() as local:
                return self.intern(document, uow=local)

        content_hash = document_hash(document)
        existing = self._lookup(uow.conn, content_hash)
        if existing is not None:
            return existing

        try:
            cur = uow.conn.execute(
                "INSERT INTO attribute_documents (content_hash, document_json) VALUES (?, ?)",
                (content_hash, stable_json_dumps(canonical_value(document))),
            )
        except sqlite3.IntegrityError as exc:
            logger.debug("Lost intern race for %s, reading winner", content_hash)
            winner = self._lookup(uow.conn, content_hash)
            if winner is None:
                raise DocumentInternFailure(
                    f"Document {content_hash} conflicted on insert but no stored row was found"
                ) from exc
            return winner
        return int(cur.lastrowid)

    def get(self, document_id: int) -> AttributeDocumentRecord | None:
        row = self._store._fetch_one(
            "SELECT * FROM attribute_documents WHERE document_id = ?", (document_id,)
        )
        return _row_to_document(row) if row else None

    def fetch_many(
        self,
        document_ids: Iterable[int],
        *,
        conn: sqlite3.Connection | None = None,
    ) -> dict[int, dict[str, Any]]:
        ids = sorted(set(document_ids))
        if not ids:
            return {}
        documents: dict[int, dict[str, Any]] = {}
        with self._store.snapshot(conn) as active:
            # Chunked to stay under SQLite's bound-parameter limit.
            for offset in range(0, len(ids), 500):
                chunk = ids[offset : offset + 500]
                placeholders = ", ".join("?" for _ in chunk)
                rows = active.execute(
                    f"SELECT document_id, document_json FROM attribute_documents "
                    f"WHERE document_id IN ({placeholders})",
                    chunk,
                ).fetchall()
                for row in rows:
                    documents[int(row["document_id"])] = json.loads(row["document_json"])
        return documents

    def count(self) -> int:
        row = self._store._fetch_one("SELECT COUNT(*) AS count FROM attribute_documents")
        return int(row["count"]) if row else 0

    @staticmethod
    def _lookup(conn: sqlite3.Connection, content_hash: str) -> int | None:
        row = conn.execute(
            "SELECT document_id FROM attribute_documents WHERE content_hash = ?",
            (content_hash,),
        ).fetchone()
        return int(row["document_id"]) if row else None


def _row_to_document(row: sqlite3.Row) -> AttributeDocumentRecord:
    return AttributeDocumentRecord(
        document_id=int(row["document_id"]),
        content_hash=row["content_hash"],
        document=json.loads(row["document_json"]),
    )


__all__ = ["DocumentStore"]
