"""External request schemas for registry writes."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from persistence.models import LumisectionSource


class ObservedLumisections(BaseModel):
    """Dense per-lumisection sequence observed by a feed or a reviewer.

    ``lumisections[0]`` is lumisection 1.
    """

    run_number: int = Field(ge=1)
    dataset_name: str = "online"
    source: LumisectionSource = LumisectionSource.OMS
    lumisections: List[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("dataset_name")
    @classmethod
    def _validate_dataset_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("dataset_name must not be empty")
        return cleaned


class RunCreateRequest(BaseModel):
    oms_attributes: dict[str, Any]
    rr_attributes: dict[str, Any] = Field(default_factory=dict)
    oms_lumisections: List[dict[str, Any]] = Field(default_factory=list)
    rr_lumisections: List[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_run_number(self) -> "RunCreateRequest":
        if "run_number" not in self.oms_attributes:
            raise ValueError("oms_attributes must contain run_number")
        if self.rr_lumisections and len(self.oms_lumisections) != len(self.rr_lumisections):
            raise ValueError("oms_lumisections and rr_lumisections must have the same length")
        return self

    @property
    def run_number(self) -> int:
        return int(self.oms_attributes["run_number"])


class RunEditRequest(BaseModel):
    """Reviewer edit of an OPEN run; empty lumisection lists leave them untouched."""

    oms_attributes: dict[str, Any] = Field(default_factory=dict)
    rr_attributes: dict[str, Any] = Field(default_factory=dict)
    oms_lumisections: List[dict[str, Any]] = Field(default_factory=list)
    rr_lumisections: List[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class RunFilterRequest(BaseModel):
    """Filtered, sorted and paginated run listing; ``page`` is zero-based."""

    filter: dict[str, Any] = Field(default_factory=dict)
    sortings: List[tuple[str, str]] = Field(default_factory=list)
    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=50, ge=1, le=1000)
    significant_only: bool = False

    model_config = ConfigDict(extra="forbid")


__all__ = ["ObservedLumisections", "RunCreateRequest", "RunEditRequest", "RunFilterRequest"]
