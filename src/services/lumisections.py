"""Lumisection workflows: creation, differential updates and reads."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence, TypeVar

from lumisections.attributes import ALL_ATTRIBUTES, Whitelist
from lumisections.diff import diff_lumisections
from lumisections.ranges import LumisectionRange, compact
from lumisections.whitelists import whitelist_for
from persistence.events import require_actor
from persistence.models import LumisectionEventRecord, LumisectionSource
from persistence.sqlite_store import UnitOfWork
from services.changes import ChangeAuthor, LumisectionChange
from services.registry import Registry
from services.retry import run_with_retry

T = TypeVar("T")

logger = logging.getLogger(__name__)


class LumisectionService:
    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def whitelist(self, source: LumisectionSource | str) -> tuple[str, ...]:
        return whitelist_for(source, self._registry.whitelists)

    # Writes

    def create_lumisections(
        self,
        run_number: int,
        dataset_name: str,
        lumisections: Sequence[Mapping[str, Any]],
        source: LumisectionSource,
        author: ChangeAuthor,
        *,
        whitelist: Whitelist | None = None,
        uow: UnitOfWork | None = None,
    ) -> list[LumisectionEventRecord]:
        """Compact a full sequence and write one event per range."""
        require_actor(author.actor, run_number=run_number, dataset_name=dataset_name)
        resolved = tuple(whitelist) if whitelist is not None else self.whitelist(source)
        ranges = compact(lumisections, resolved)
        return self._write_ranges(run_number, dataset_name, source, ranges, author, uow=uow)

    def create_signed_off_lumisections(
        self,
        run_number: int,
        dataset_name: str,
        lumisections: Sequence[Mapping[str, Any]],
        author: ChangeAuthor,
        *,
        uow: UnitOfWork | None = None,
    ) -> list[LumisectionEventRecord]:
        """Store reviewer lumisections of a signed-off dataset keeping every attribute."""
        return self.create_lumisections(
            run_number,
            dataset_name,
            lumisections,
            LumisectionSource.RR,
            author,
            whitelist=ALL_ATTRIBUTES,
            uow=uow,
        )

    def update_lumisections(
        self,
        run_number: int,
        dataset_name: str,
        observed: Sequence[Mapping[str, Any]],
        source: LumisectionSource,
        author: ChangeAuthor,
        *,
        whitelist: Whitelist | None = None,
        uow: UnitOfWork | None = None,
    ) -> list[LumisectionEventRecord]:
        """Write only the ranges in which ``observed`` differs from the stored state.

        The stored state is read inside the write transaction, so a retried
        attempt always diffs against fresh data.
        """
        require_actor(author.actor, run_number=run_number, dataset_name=dataset_name)
        resolved = tuple(whitelist) if whitelist is not None else self.whitelist(source)

        def attempt(active: UnitOfWork) -> list[LumisectionEventRecord]:
            previous = self._registry.reconstructor.reconstruct(
                run_number, dataset_name, source, conn=active.conn
            )
            ranges = diff_lumisections(
                previous,
                observed,
                resolved,
                run_number=run_number,
                dataset_name=dataset_name,
            )
            if not ranges:
                logger.debug(
                    "No lumisection changes for dataset %s of run %s", dataset_name, run_number
                )
                return []
            return self._write_ranges(run_number, dataset_name, source, ranges, author, uow=active)

        return self._in_transaction(attempt, uow)

    def _write_ranges(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource,
        ranges: Sequence[LumisectionRange],
        author: ChangeAuthor,
        *,
        uow: UnitOfWork | None,
    ) -> list[LumisectionEventRecord]:
        if not ranges:
            return []

        def attempt(active: UnitOfWork) -> list[LumisectionEventRecord]:
            records = [
                self._change(run_number, dataset_name, source, lumisection_range, author).apply(active)
                for lumisection_range in ranges
            ]
            active.on_commit(
                lambda: self._registry.notifier.dataset_changed(run_number, dataset_name, source)
            )
            logger.info(
                "Saved %d lumisection range(s) for dataset %s of run %s",
                len(records),
                dataset_name,
                run_number,
            )
            return records

        return self._in_transaction(attempt, uow)

    def _change(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource,
        lumisection_range: LumisectionRange,
        author: ChangeAuthor,
    ) -> LumisectionChange:
        registry = self._registry
        return LumisectionChange(
            store=registry.store,
            documents=registry.documents,
            events=registry.events,
            index=registry.assignments,
            run_number=run_number,
            dataset_name=dataset_name,
            source=source,
            lumisection_range=lumisection_range,
            author=author,
        )

    def _in_transaction(
        self, func: Callable[[UnitOfWork], T], uow: UnitOfWork | None
    ) -> T:
        if uow is not None:
            return func(uow)

        def attempt() -> T:
            with self._registry.store.transaction() as local:
                return func(local)

        return run_with_retry(attempt, settings=self._registry.settings)

    # Reads

    def get_lumisections(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
    ) -> list[dict[str, Any]]:
        return self._registry.reconstructor.reconstruct(run_number, dataset_name, source)

    def get_lumisection_ranges(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
        whitelist: Whitelist | None = None,
    ) -> list[LumisectionRange]:
        resolved = tuple(whitelist) if whitelist is not None else ALL_ATTRIBUTES
        return self._registry.reconstructor.ranges(run_number, dataset_name, source, resolved)

    def get_lumisection_history(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource = LumisectionSource.RR,
    ) -> list[dict[str, Any]]:
        registry = self._registry
        records = registry.assignments.events_for(run_number, dataset_name, source)
        documents = registry.documents.fetch_many(record.document_id for record in records)
        history: list[dict[str, Any]] = []
        for record in records:
            event = registry.events.get(record.version)
            history.append(
                {
                    "version": record.version,
                    "start": record.start_lumisection,
                    "end": record.end_lumisection,
                    "source": record.source.value,
                    "actor": event.actor if event else None,
                    "comment": event.comment if event else None,
                    "created_at": event.created_at.isoformat() if event else None,
                    "attributes": documents.get(record.document_id, {}),
                }
            )
        return history


__all__ = ["LumisectionService"]
