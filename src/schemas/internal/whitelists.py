"""Attribute whitelist configuration schema."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AttributeWhitelists(BaseModel):
    """Named whitelists selecting which keys take part in range comparison."""

    oms: List[str] = Field(default_factory=lambda: ["*"])
    rr: List[str] = Field(default_factory=lambda: ["*"])

    model_config = ConfigDict(extra="forbid")

    @field_validator("oms", "rr")
    @classmethod
    def _validate_keys(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("A whitelist must name at least one attribute (or '*')")
        if "*" in cleaned and cleaned != ["*"]:
            raise ValueError("'*' must be the only entry of a whitelist")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Whitelist entries must be unique")
        return cleaned


__all__ = ["AttributeWhitelists"]
