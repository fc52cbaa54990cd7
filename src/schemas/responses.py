"""External response schemas for registry reads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from persistence.models import DatasetRecord, LumisectionEventRecord, RunRecord


class RunView(BaseModel):
    run_number: int
    oms_attributes: dict[str, Any]
    rr_attributes: dict[str, Any]
    deleted: bool
    version: int

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_record(cls, record: RunRecord) -> "RunView":
        return cls(
            run_number=record.run_number,
            oms_attributes=record.oms_attributes,
            rr_attributes=record.rr_attributes,
            deleted=record.deleted,
            version=record.version,
        )


class DatasetView(BaseModel):
    run_number: int
    dataset_name: str
    dataset_attributes: dict[str, Any]
    deleted: bool
    version: int

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_record(cls, record: DatasetRecord) -> "DatasetView":
        return cls(
            run_number=record.run_number,
            dataset_name=record.dataset_name,
            dataset_attributes=record.dataset_attributes,
            deleted=record.deleted,
            version=record.version,
        )


class LumisectionEventView(BaseModel):
    version: int
    run_number: int
    dataset_name: str
    source: str
    start: int
    end: int

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_record(cls, record: LumisectionEventRecord) -> "LumisectionEventView":
        return cls(
            version=record.version,
            run_number=record.run_number,
            dataset_name=record.dataset_name,
            source=record.source.value,
            start=record.start_lumisection,
            end=record.end_lumisection,
        )


__all__ = ["DatasetView", "LumisectionEventView", "RunView"]
