"""Run and dataset workflows on top of the event-sourced projections."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence, TypeVar

from core.errors import RunAlreadyExistsError, RunNotFoundError, RunStateError
from lumisections.attributes import changed_attributes
from persistence.events import require_actor
from persistence.models import (
    DatasetEventRecord,
    DatasetRecord,
    LumisectionEventRecord,
    LumisectionSource,
    RunEventRecord,
    RunPage,
    RunRecord,
)
from persistence.sqlite_store import UnitOfWork
from schemas.requests import RunFilterRequest
from services.changes import ChangeAuthor
from services.lumisections import LumisectionService
from services.registry import Registry
from services.retry import run_with_retry

T = TypeVar("T")

RUN_STATES = ("OPEN", "SIGNOFF", "COMPLETED")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunEditResult:
    run: RunRecord
    rr_lumisection_events: list[LumisectionEventRecord] = field(default_factory=list)
    oms_lumisection_events: list[LumisectionEventRecord] = field(default_factory=list)
    run_event: RunEventRecord | None = None


class RunService:
    def __init__(self, registry: Registry, lumisections: LumisectionService | None = None) -> None:
        self._registry = registry
        self._lumisections = lumisections or LumisectionService(registry)

    @property
    def default_dataset(self) -> str:
        return self._registry.settings.default_dataset_name

    # Event writers

    def update_or_create_run(
        self,
        run_number: int,
        oms_metadata: Mapping[str, Any],
        rr_metadata: Mapping[str, Any],
        author: ChangeAuthor,
        *,
        deleted: bool = False,
        uow: UnitOfWork | None = None,
    ) -> RunEventRecord:
        """Append a run event and recompute the run projection."""
        run_number = int(run_number)
        actor = require_actor(author.actor, run_number=run_number)
        registry = self._registry

        def attempt(active: UnitOfWork) -> RunEventRecord:
            oms_id = registry.documents.intern(oms_metadata, uow=active)
            rr_id = registry.documents.intern(rr_metadata, uow=active)
            event = registry.events.append(actor, author.comment, uow=active)
            record = registry.runs.record_event(
                version=event.version,
                run_number=run_number,
                oms_metadata_id=oms_id,
                rr_metadata_id=rr_id,
                deleted=deleted,
                uow=active,
            )
            registry.runs.refresh(run_number, uow=active)
            logger.info("Saved run %s at version %s", run_number, event.version)
            return record

        return self._in_transaction(attempt, uow)

    def update_or_create_dataset(
        self,
        run_number: int,
        dataset_name: str,
        dataset_metadata: Mapping[str, Any],
        author: ChangeAuthor,
        *,
        deleted: bool = False,
        uow: UnitOfWork | None = None,
    ) -> DatasetEventRecord:
        """Append a dataset event and recompute the dataset projection."""
        run_number = int(run_number)
        actor = require_actor(author.actor, run_number=run_number, dataset_name=dataset_name)
        registry = self._registry

        def attempt(active: UnitOfWork) -> DatasetEventRecord:
            metadata_id = registry.documents.intern(dataset_metadata, uow=active)
            event = registry.events.append(actor, author.comment, uow=active)
            record = registry.datasets.record_event(
                version=event.version,
                run_number=run_number,
                dataset_name=dataset_name,
                metadata_id=metadata_id,
                deleted=deleted,
                uow=active,
            )
            registry.datasets.refresh(run_number, dataset_name, uow=active)
            active.on_commit(
                lambda: registry.notifier.dataset_changed(run_number, dataset_name, None)
            )
            return record

        return self._in_transaction(attempt, uow)

    # Reads

    def get_run(self, run_number: int) -> RunRecord:
        run = self._registry.runs.get(int(run_number))
        if run is None:
            raise RunNotFoundError("Run not found", run_number=int(run_number))
        return run

    def list_runs(self, *, limit: int | None = 50) -> list[RunRecord]:
        return self._registry.runs.list_runs(limit=limit)

    def filter_runs(self, request: RunFilterRequest) -> RunPage:
        return self._registry.runs.filter_runs(
            request.filter,
            sortings=request.sortings,
            page=request.page,
            page_size=request.page_size,
            significant_only=request.significant_only,
        )

    def get_run_history(self, run_number: int) -> list[dict[str, Any]]:
        return self._registry.runs.history(int(run_number))

    def get_dataset(self, run_number: int, dataset_name: str) -> DatasetRecord | None:
        return self._registry.datasets.get(int(run_number), dataset_name)

    def list_datasets(self, run_number: int) -> list[DatasetRecord]:
        return self._registry.datasets.list_for_run(int(run_number))

    # Workflows

    def new_run(
        self,
        oms_attributes: Mapping[str, Any],
        rr_attributes: Mapping[str, Any],
        oms_lumisections: Sequence[Mapping[str, Any]],
        rr_lumisections: Sequence[Mapping[str, Any]],
        author: ChangeAuthor,
    ) -> RunEventRecord:
        """Register a run with its online dataset and lumisections in one transaction."""
        if "run_number" not in oms_attributes:
            raise ValueError("oms_attributes must contain run_number")
        run_number = int(oms_attributes["run_number"])
        require_actor(author.actor, run_number=run_number)
        dataset_name = self.default_dataset

        def attempt(active: UnitOfWork) -> RunEventRecord:
            if self._registry.runs.get(run_number, conn=active.conn) is not None:
                raise RunAlreadyExistsError("Run already exists", run_number=run_number)
            run_event = self.update_or_create_run(
                run_number, oms_attributes, rr_attributes, author, uow=active
            )
            self.update_or_create_dataset(run_number, dataset_name, {}, author, uow=active)
            if rr_lumisections:
                self._lumisections.create_lumisections(
                    run_number,
                    dataset_name,
                    oms_lumisections,
                    LumisectionSource.OMS,
                    author,
                    uow=active,
                )
                self._lumisections.create_lumisections(
                    run_number,
                    dataset_name,
                    rr_lumisections,
                    LumisectionSource.RR,
                    author,
                    uow=active,
                )
            return run_event

        return self._in_transaction(attempt, None)

    def edit_run(
        self,
        run_number: int,
        *,
        oms_attributes: Mapping[str, Any],
        rr_attributes: Mapping[str, Any],
        oms_lumisections: Sequence[Mapping[str, Any]],
        rr_lumisections: Sequence[Mapping[str, Any]],
        author: ChangeAuthor,
    ) -> RunEditResult:
        """Apply a reviewer edit: lumisection diffs first, then changed run attributes."""
        run_number = int(run_number)
        require_actor(author.actor, run_number=run_number)
        dataset_name = self.default_dataset
        registry = self._registry

        def attempt(active: UnitOfWork) -> RunEditResult:
            run = self._require_open(run_number, active)
            rr_events: list[LumisectionEventRecord] = []
            oms_events: list[LumisectionEventRecord] = []
            if rr_lumisections:
                rr_events = self._lumisections.update_lumisections(
                    run_number, dataset_name, rr_lumisections, LumisectionSource.RR, author, uow=active
                )
            if rr_events and oms_lumisections:
                oms_events = self._lumisections.update_lumisections(
                    run_number,
                    dataset_name,
                    oms_lumisections,
                    LumisectionSource.OMS,
                    author,
                    uow=active,
                )
                # Bump the dataset version so summary caches notice the lumisection change.
                self.update_or_create_dataset(run_number, dataset_name, {}, author, uow=active)

            new_oms = changed_attributes(run.oms_attributes, oms_attributes)
            new_rr = changed_attributes(run.rr_attributes, rr_attributes)
            run_event = None
            if new_rr:
                run_event = self.update_or_create_run(
                    run_number, new_oms, new_rr, author, uow=active
                )
            updated = registry.runs.get(run_number, conn=active.conn) or run
            return RunEditResult(
                run=updated,
                rr_lumisection_events=rr_events,
                oms_lumisection_events=oms_events,
                run_event=run_event,
            )

        return self._in_transaction(attempt, None)

    def move_run(self, run_number: int, to_state: str, author: ChangeAuthor) -> RunRecord:
        run_number = int(run_number)
        require_actor(author.actor, run_number=run_number)
        if to_state not in RUN_STATES:
            raise RunStateError(
                f"The final state must be one of {', '.join(RUN_STATES)}, got {to_state}",
                run_number=run_number,
            )
        registry = self._registry

        def attempt(active: UnitOfWork) -> RunRecord:
            run = registry.runs.get(run_number, conn=active.conn)
            if run is None:
                raise RunNotFoundError("Run not found", run_number=run_number)
            _validate_move(run, to_state)
            self.update_or_create_run(run_number, {}, {"state": to_state}, author, uow=active)
            return registry.runs.get(run_number, conn=active.conn) or run

        return self._in_transaction(attempt, None)

    def mark_significant(self, run_number: int, author: ChangeAuthor) -> RunRecord:
        run_number = int(run_number)
        require_actor(author.actor, run_number=run_number)
        registry = self._registry

        def attempt(active: UnitOfWork) -> RunRecord:
            run = self._require_open(run_number, active)
            if run.rr_attributes.get("significant") is True:
                raise RunStateError("Run is already significant", run_number=run_number)
            self.update_or_create_run(run_number, {}, {"significant": True}, author, uow=active)
            return registry.runs.get(run_number, conn=active.conn) or run

        return self._in_transaction(attempt, None)

    def _require_open(self, run_number: int, uow: UnitOfWork) -> RunRecord:
        run = self._registry.runs.get(run_number, conn=uow.conn)
        if run is None:
            raise RunNotFoundError("Run not found", run_number=run_number)
        if run.rr_attributes.get("state") != "OPEN":
            raise RunStateError("Run must be in state OPEN", run_number=run_number)
        return run

    def _in_transaction(
        self, func: Callable[[UnitOfWork], T], uow: UnitOfWork | None
    ) -> T:
        if uow is not None:
            return func(uow)

        def attempt() -> T:
            with self._registry.store.transaction() as local:
                return func(local)

        return run_with_retry(attempt, settings=self._registry.settings)


def _validate_move(run: RunRecord, to_state: str) -> None:
    rr_attributes = run.rr_attributes
    if rr_attributes.get("state") == to_state:
        raise RunStateError(f"Run's state is already {to_state}", run_number=run.run_number)
    if to_state == "SIGNOFF":
        for name, value in rr_attributes.items():
            if "_triplet" not in name or not isinstance(value, Mapping):
                continue
            if value.get("status") in ("", "NO VALUE FOUND", None):
                component = name.split("_triplet")[0]
                raise RunStateError(
                    f"The status of {component} must not be empty",
                    run_number=run.run_number,
                )
    if rr_attributes.get("class", "") == "":
        raise RunStateError("The class of the run must not be empty", run_number=run.run_number)


__all__ = ["RUN_STATES", "RunEditResult", "RunService"]
