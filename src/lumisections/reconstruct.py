"""Rebuild the current value of every lumisection from the event log."""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping, Sequence

from lumisections.attributes import ALL_ATTRIBUTES, Whitelist, empty_component
from lumisections.ranges import LumisectionRange, compact
from persistence.assignments import SliceAssignmentIndex
from persistence.documents import DocumentStore
from persistence.models import AssignmentRow, LumisectionSource
from persistence.sqlite_store import SqliteStore


def merge_assignments(
    rows: Sequence[AssignmentRow],
    documents: Mapping[int, Mapping[str, Any]],
) -> dict[int, dict[str, Any]]:
    """Merge each lumisection's documents in ascending version order.

    A later version only overwrites the keys it carries. Keyed by explicit
    lumisection number.
    """
    merged: dict[int, dict[str, Any]] = {}
    for row in sorted(rows, key=lambda item: (item.lumisection_number, item.version)):
        document = documents.get(row.document_id)
        if document is None:
            raise KeyError(f"Attribute document {row.document_id} is missing")
        merged.setdefault(row.lumisection_number, {}).update(document)
    return merged


def components_present(merged: Mapping[int, Mapping[str, Any]]) -> list[str]:
    components: list[str] = []
    seen: set[str] = set()
    for number in sorted(merged):
        for component in merged[number]:
            if component not in seen:
                seen.add(component)
                components.append(component)
    return components


def fill_lumisections(
    merged: Mapping[int, Mapping[str, Any]],
    length: int | None = None,
) -> list[dict[str, Any]]:
    """Densify merged values into lumisections ``1..max``.

    ``max`` is the highest assigned lumisection, or ``length`` when that is
    larger. Gaps and components missing from a lumisection are filled with the
    EMPTY placeholder so every entry carries every component seen in the dataset.
    """
    last_number = max(max(merged, default=0), length or 0)
    if last_number == 0:
        return []
    components = components_present(merged)
    lumisections: list[dict[str, Any]] = []
    for number in range(1, last_number + 1):
        value = merged.get(number, {})
        lumisections.append(
            {
                component: value[component] if component in value else empty_component()
                for component in components
            }
        )
    return lumisections


class DatasetReconstructor:
    def __init__(self, store: SqliteStore) -> None:
        self._store = store
        self._index = SliceAssignmentIndex(store)
        self._documents = DocumentStore(store)

    def merged(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> dict[int, dict[str, Any]]:
        with self._store.snapshot(conn) as active:
            rows = self._index.assignments_for(run_number, dataset_name, source, conn=active)
            documents = self._documents.fetch_many(
                (row.document_id for row in rows), conn=active
            )
        return merge_assignments(rows, documents)

    def reconstruct(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
        *,
        length: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> list[dict[str, Any]]:
        merged = self.merged(run_number, dataset_name, source, conn=conn)
        return fill_lumisections(merged, length)

    def ranges(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
        whitelist: Whitelist = ALL_ATTRIBUTES,
    ) -> list[LumisectionRange]:
        return compact(self.reconstruct(run_number, dataset_name, source), whitelist)


__all__ = [
    "DatasetReconstructor",
    "components_present",
    "fill_lumisections",
    "merge_assignments",
]
