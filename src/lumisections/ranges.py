"""Compaction of per-lumisection values into contiguous ranges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from lumisections.attributes import ALL_ATTRIBUTES, Whitelist, deep_equal, restrict


@dataclass(frozen=True)
class LumisectionRange:
    """Inclusive, 1-indexed run of lumisections sharing one attribute value."""

    start: int
    end: int
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.start < 1 or self.end < self.start:
            raise ValueError(f"Invalid lumisection range {self.start}..{self.end}")

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def as_dict(self) -> dict[str, Any]:
        """Flatten to ``{**attributes, "start": ..., "end": ...}``."""
        return {**self.attributes, "start": self.start, "end": self.end}


def compact(
    lumisections: Sequence[Mapping[str, Any]],
    whitelist: Whitelist = ALL_ATTRIBUTES,
) -> list[LumisectionRange]:
    """Split a dense sequence into maximal ranges of equal (whitelisted) values.

    ``lumisections[0]`` is lumisection 1. Ranges partition ``[1, len]`` and a
    new one starts exactly where the restricted value changes.
    """
    ranges: list[LumisectionRange] = []
    if not lumisections:
        return ranges

    current = restrict(lumisections[0], whitelist)
    start = 1
    for number, lumisection in enumerate(lumisections[1:], start=2):
        value = restrict(lumisection, whitelist)
        if deep_equal(current, value):
            continue
        ranges.append(LumisectionRange(start=start, end=number - 1, attributes=current))
        current = value
        start = number
    ranges.append(LumisectionRange(start=start, end=len(lumisections), attributes=current))
    return ranges


def expand(ranges: Sequence[LumisectionRange]) -> list[dict[str, Any]]:
    """Inverse of :func:`compact` for contiguous ranges starting at 1."""
    lumisections: list[dict[str, Any]] = []
    expected = 1
    for lumisection_range in ranges:
        if lumisection_range.start != expected:
            raise ValueError(
                f"Ranges are not contiguous: expected start {expected}, "
                f"got {lumisection_range.start}"
            )
        for _ in range(lumisection_range.length):
            lumisections.append(dict(lumisection_range.attributes))
        expected = lumisection_range.end + 1
    return lumisections


__all__ = ["LumisectionRange", "compact", "expand"]
