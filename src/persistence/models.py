"""Lightweight persistence records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class LumisectionSource(str, Enum):
    """Origin of a lumisection event family."""

    OMS = "oms"
    RR = "rr"


@dataclass(frozen=True)
class EventRecord:
    version: int
    actor: str
    comment: str
    created_at: datetime


@dataclass(frozen=True)
class AttributeDocumentRecord:
    document_id: int
    content_hash: str
    document: dict[str, Any]


@dataclass(frozen=True)
class LumisectionEventRecord:
    version: int
    run_number: int
    dataset_name: str
    source: LumisectionSource
    document_id: int
    start_lumisection: int
    end_lumisection: int


@dataclass(frozen=True)
class AssignmentRow:
    lumisection_number: int
    version: int
    document_id: int


@dataclass(frozen=True)
class RunEventRecord:
    version: int
    run_number: int
    oms_metadata_id: int
    rr_metadata_id: int
    deleted: bool


@dataclass(frozen=True)
class DatasetEventRecord:
    version: int
    run_number: int
    dataset_name: str
    metadata_id: int
    deleted: bool


@dataclass(frozen=True)
class RunRecord:
    run_number: int
    oms_attributes: dict[str, Any]
    rr_attributes: dict[str, Any]
    deleted: bool
    version: int


@dataclass(frozen=True)
class DatasetRecord:
    run_number: int
    dataset_name: str
    dataset_attributes: dict[str, Any]
    deleted: bool
    version: int


@dataclass(frozen=True)
class RunPage:
    """One page of a filtered run listing; ``page`` is zero-based."""

    runs: list[RunRecord]
    count: int
    pages: int
    page: int
    page_size: int


__all__ = [
    "AssignmentRow",
    "AttributeDocumentRecord",
    "DatasetEventRecord",
    "DatasetRecord",
    "EventRecord",
    "LumisectionEventRecord",
    "LumisectionSource",
    "RunEventRecord",
    "RunPage",
    "RunRecord",
]
