"""Lumisection range compaction, differencing and reconstruction."""

from lumisections.attributes import ALL_ATTRIBUTES, deep_equal, restrict
from lumisections.diff import diff_lumisections
from lumisections.ranges import LumisectionRange, compact

__all__ = [
    "ALL_ATTRIBUTES",
    "LumisectionRange",
    "compact",
    "deep_equal",
    "diff_lumisections",
    "restrict",
]
