"""CLI command groups."""

__all__ = [
    "config",
    "lumisections",
    "runs",
]

from . import config, lumisections, runs
