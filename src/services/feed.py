"""Queue-fed consumer for automatically observed lumisections."""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, field
from typing import Any, Mapping

from core.errors import RegistryError
from persistence.models import LumisectionEventRecord
from schemas.requests import ObservedLumisections
from services.changes import ChangeAuthor
from services.lumisections import LumisectionService

logger = logging.getLogger(__name__)


@dataclass
class DrainReport:
    processed: int = 0
    events: list[LumisectionEventRecord] = field(default_factory=list)
    failures: list[tuple[ObservedLumisections, RegistryError]] = field(default_factory=list)


class FeedConsumer:
    """Applies observed sequences as differential updates under an automatic actor.

    Fetching from the upstream feed and scheduling stay outside; producers
    only ``submit`` messages.
    """

    def __init__(
        self,
        lumisections: LumisectionService,
        *,
        feed_name: str,
        maxsize: int = 0,
    ) -> None:
        if not feed_name or not feed_name.strip():
            raise ValueError("feed_name must not be empty")
        self._lumisections = lumisections
        self.feed_name = feed_name.strip()
        self._queue: queue.Queue[ObservedLumisections] = queue.Queue(maxsize=maxsize)

    @property
    def author(self) -> ChangeAuthor:
        return ChangeAuthor(actor=f"auto - {self.feed_name}", comment="automatic update")

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, message: ObservedLumisections | Mapping[str, Any]) -> ObservedLumisections:
        """Validate ``message`` and enqueue it; raises pydantic ValidationError if malformed."""
        if not isinstance(message, ObservedLumisections):
            message = ObservedLumisections.model_validate(dict(message))
        self._queue.put(message)
        return message

    def drain(self, *, max_messages: int | None = None) -> DrainReport:
        """Process queued messages until empty (or ``max_messages``).

        Registry errors for one message are collected and do not stop the
        drain; anything else propagates.
        """
        report = DrainReport()
        while max_messages is None or report.processed < max_messages:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                report.events.extend(self._apply(message))
            except RegistryError as exc:
                logger.warning(
                    "Feed %s could not update dataset %s of run %s: %s",
                    self.feed_name,
                    message.dataset_name,
                    message.run_number,
                    exc,
                )
                report.failures.append((message, exc))
            finally:
                report.processed += 1
                self._queue.task_done()
        return report

    def _apply(self, message: ObservedLumisections) -> list[LumisectionEventRecord]:
        return self._lumisections.update_lumisections(
            message.run_number,
            message.dataset_name,
            message.lumisections,
            message.source,
            self.author,
        )


__all__ = ["DrainReport", "FeedConsumer"]
