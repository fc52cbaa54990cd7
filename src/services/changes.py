"""Single "apply change" operation for one lumisection range."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from core.errors import RegistryError
from lumisections.ranges import LumisectionRange
from persistence.contracts import AuthoredLog, DocumentInterner, LumisectionIndex
from persistence.events import require_actor
from persistence.models import LumisectionEventRecord, LumisectionSource
from persistence.sqlite_store import SqliteStore, UnitOfWork


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeAuthor:
    """Out-of-band authorship supplied with every mutating call."""

    actor: str | None
    comment: str | None = ""


class ChangeState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    DOCUMENT_INTERNED = "document_interned"
    EVENT_APPENDED = "event_appended"
    ASSIGNMENTS_WRITTEN = "assignments_written"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS: dict[ChangeState, set[ChangeState]] = {
    ChangeState.PENDING: {ChangeState.VALIDATING},
    ChangeState.VALIDATING: {ChangeState.DOCUMENT_INTERNED, ChangeState.ROLLED_BACK},
    ChangeState.DOCUMENT_INTERNED: {ChangeState.EVENT_APPENDED, ChangeState.ROLLED_BACK},
    ChangeState.EVENT_APPENDED: {ChangeState.ASSIGNMENTS_WRITTEN, ChangeState.ROLLED_BACK},
    ChangeState.ASSIGNMENTS_WRITTEN: {ChangeState.COMMITTED, ChangeState.ROLLED_BACK},
    ChangeState.COMMITTED: set(),
    ChangeState.ROLLED_BACK: set(),
}


class LumisectionChange:
    """Writes one range as Event + LumisectionEvent + assignments, atomically.

    When given an outer unit of work the change joins it and only reaches
    COMMITTED (or ROLLED_BACK) when that unit finishes.
    """

    def __init__(
        self,
        *,
        store: SqliteStore,
        documents: DocumentInterner,
        events: AuthoredLog,
        index: LumisectionIndex,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource,
        lumisection_range: LumisectionRange,
        author: ChangeAuthor,
    ) -> None:
        self._store = store
        self._documents = documents
        self._events = events
        self._index = index
        self.run_number = run_number
        self.dataset_name = dataset_name
        self.source = LumisectionSource(source)
        self.lumisection_range = lumisection_range
        self.author = author
        self.state = ChangeState.PENDING
        self.version: int | None = None

    @property
    def finished(self) -> bool:
        return self.state in (ChangeState.COMMITTED, ChangeState.ROLLED_BACK)

    def apply(self, uow: UnitOfWork | None = None) -> LumisectionEventRecord:
        if self.state is not ChangeState.PENDING:
            raise RuntimeError(f"Change already applied (state={self.state.value})")
        self._transition(ChangeState.VALIDATING)
        try:
            actor = require_actor(
                self.author.actor,
                run_number=self.run_number,
                dataset_name=self.dataset_name,
            )
            if uow is None:
                with self._store.transaction() as local:
                    record = self._write(local, actor)
                self._transition(ChangeState.COMMITTED)
                return record
            record = self._write(uow, actor)
        except Exception as exc:
            self._fail(exc)
            raise
        uow.on_commit(lambda: self._transition(ChangeState.COMMITTED))
        uow.on_rollback(lambda: self._transition(ChangeState.ROLLED_BACK))
        return record

    def _write(self, uow: UnitOfWork, actor: str) -> LumisectionEventRecord:
        document_id = self._documents.intern(self.lumisection_range.attributes, uow=uow)
        self._transition(ChangeState.DOCUMENT_INTERNED)

        event = self._events.append(actor, self.author.comment, uow=uow)
        self.version = event.version
        self._transition(ChangeState.EVENT_APPENDED)

        self._index.record_event(
            version=event.version,
            run_number=self.run_number,
            dataset_name=self.dataset_name,
            source=self.source,
            document_id=document_id,
            uow=uow,
        )
        self._index.assign(
            version=event.version,
            start_lumisection=self.lumisection_range.start,
            end_lumisection=self.lumisection_range.end,
            uow=uow,
        )
        self._transition(ChangeState.ASSIGNMENTS_WRITTEN)
        return LumisectionEventRecord(
            version=event.version,
            run_number=self.run_number,
            dataset_name=self.dataset_name,
            source=self.source,
            document_id=document_id,
            start_lumisection=self.lumisection_range.start,
            end_lumisection=self.lumisection_range.end,
        )

    def _fail(self, exc: Exception) -> None:
        if not self.finished:
            self._transition(ChangeState.ROLLED_BACK)
        if isinstance(exc, RegistryError):
            exc.run_number = exc.run_number if exc.run_number is not None else self.run_number
            exc.dataset_name = exc.dataset_name or self.dataset_name
            exc.version = exc.version if exc.version is not None else self.version
        logger.warning(
            "Error saving lumisections %s..%s of dataset %s of run %s (version %s): %s",
            self.lumisection_range.start,
            self.lumisection_range.end,
            self.dataset_name,
            self.run_number,
            self.version,
            exc,
        )

    def _transition(self, target: ChangeState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal change transition {self.state.value} -> {target.value}")
        logger.debug(
            "Change run=%s dataset=%s range=%s..%s: %s -> %s",
            self.run_number,
            self.dataset_name,
            self.lumisection_range.start,
            self.lumisection_range.end,
            self.state.value,
            target.value,
        )
        self.state = target


__all__ = ["ChangeAuthor", "ChangeState", "LumisectionChange"]
