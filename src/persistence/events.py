"""Append-only log of authored change events."""

from __future__ import annotations

import logging
import sqlite3

from core.errors import MissingActorError
from persistence.models import EventRecord
from persistence.sqlite_store import SqliteStore, UnitOfWork, from_iso, now_iso


logger = logging.getLogger(__name__)


def require_actor(
    actor: str | None,
    *,
    run_number: int | None = None,
    dataset_name: str | None = None,
) -> str:
    """Return the stripped actor or raise :class:`MissingActorError`."""
    cleaned = actor.strip() if isinstance(actor, str) else ""
    if not cleaned:
        raise MissingActorError(
            "The author of the change must be stated (actor/email is required)",
            run_number=run_number,
            dataset_name=dataset_name,
        )
    return cleaned


class EventLog:
    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def append(
        self,
        actor: str | None,
        comment: str | None,
        *,
        uow: UnitOfWork | None = None,
    ) -> EventRecord:
        cleaned_actor = require_actor(actor)
        if uow is None:
            with self._store.transaction() as local:
                return self.append(cleaned_actor, comment, uow=local)

        version = uow.allocate_version()
        created_at = now_iso()
        uow.conn.execute(
            "INSERT INTO events (version, actor, comment, created_at) VALUES (?, ?, ?, ?)",
            (version, cleaned_actor, comment or "", created_at),
        )
        logger.debug("Appended event %s by %s", version, cleaned_actor)
        return EventRecord(
            version=version,
            actor=cleaned_actor,
            comment=comment or "",
            created_at=from_iso(created_at),
        )

    def get(self, version: int) -> EventRecord | None:
        row = self._store._fetch_one("SELECT * FROM events WHERE version = ?", (version,))
        return _row_to_event(row) if row else None

    def list_events(self, *, after_version: int = 0, limit: int | None = None) -> list[EventRecord]:
        query = "SELECT * FROM events WHERE version > ? ORDER BY version"
        params: tuple[object, ...] = (after_version,)
        if limit is not None:
            query += " LIMIT ?"
            params = (after_version, limit)
        return [_row_to_event(row) for row in self._store._fetch_all(query, params)]


def _row_to_event(row: sqlite3.Row) -> EventRecord:
    return EventRecord(
        version=int(row["version"]),
        actor=row["actor"],
        comment=row["comment"],
        created_at=from_iso(row["created_at"]),
    )


__all__ = ["EventLog", "require_actor"]
