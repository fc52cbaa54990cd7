"""Wiring of the store and its components."""

from __future__ import annotations

from pathlib import Path

from core.config import Settings, get_settings
from lumisections.reconstruct import DatasetReconstructor
from lumisections.whitelists import get_whitelists
from persistence.assignments import SliceAssignmentIndex
from persistence.documents import DocumentStore
from persistence.events import EventLog
from persistence.projections import DatasetProjection, RunProjection
from persistence.sqlite_store import SqliteStore
from schemas.internal.whitelists import AttributeWhitelists
from services.notifications import ChangeNotifier


class Registry:
    """Holds one store and the components sharing it."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        busy_timeout: float = 5.0,
        whitelists: AttributeWhitelists | None = None,
        notifier: ChangeNotifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.store = SqliteStore(db_path, busy_timeout=busy_timeout)
        self.documents = DocumentStore(self.store)
        self.events = EventLog(self.store)
        self.assignments = SliceAssignmentIndex(self.store)
        self.reconstructor = DatasetReconstructor(self.store)
        self.runs = RunProjection(self.store)
        self.datasets = DatasetProjection(self.store)
        self.whitelists = whitelists or get_whitelists(self._settings.whitelists_path)
        self.notifier = notifier or ChangeNotifier()

    @property
    def settings(self) -> Settings:
        return self._settings

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Registry":
        resolved = settings or get_settings()
        return cls(
            resolved.registry_db_path,
            busy_timeout=resolved.registry_busy_timeout,
            settings=resolved,
        )


__all__ = ["Registry"]
