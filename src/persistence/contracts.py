"""Persistence protocol contracts."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, Mapping, Protocol

from persistence.models import AssignmentRow, EventRecord, LumisectionSource
from persistence.sqlite_store import UnitOfWork


class DocumentInterner(Protocol):
    def intern(self, document: Mapping[str, Any], *, uow: UnitOfWork | None = None) -> int: ...

    def fetch_many(
        self, document_ids: Iterable[int], *, conn: sqlite3.Connection | None = None
    ) -> dict[int, dict[str, Any]]: ...


class AuthoredLog(Protocol):
    def append(
        self, actor: str | None, comment: str | None, *, uow: UnitOfWork | None = None
    ) -> EventRecord: ...


class LumisectionIndex(Protocol):
    def record_event(
        self,
        *,
        version: int,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource,
        document_id: int,
        uow: UnitOfWork,
    ) -> None: ...

    def assign(
        self,
        *,
        version: int,
        start_lumisection: int,
        end_lumisection: int,
        uow: UnitOfWork,
    ) -> int: ...

    def assignments_for(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = ...,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> list[AssignmentRow]: ...


__all__ = ["AuthoredLog", "DocumentInterner", "LumisectionIndex"]
