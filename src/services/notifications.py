"""Post-commit "dataset changed" notifications."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from persistence.models import LumisectionSource


logger = logging.getLogger(__name__)


class DatasetChangeListener(Protocol):
    def __call__(self, run_number: int, dataset_name: str, source: LumisectionSource | None) -> None: ...


class ChangeNotifier:
    """Fans "dataset changed" signals out to subscribers such as summary caches."""

    def __init__(self) -> None:
        self._listeners: list[DatasetChangeListener] = []

    def subscribe(self, listener: DatasetChangeListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dataset_changed(
        self,
        run_number: int,
        dataset_name: str,
        source: LumisectionSource | None = None,
    ) -> None:
        logger.info("Dataset %s of run %s changed", dataset_name, run_number)
        for listener in list(self._listeners):
            try:
                listener(run_number, dataset_name, source)
            except Exception:
                logger.exception(
                    "Listener %r failed for dataset %s of run %s", listener, dataset_name, run_number
                )


__all__ = ["ChangeNotifier", "DatasetChangeListener"]
