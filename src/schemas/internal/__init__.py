"""Internal schema definitions."""

from .whitelists import AttributeWhitelists  # noqa: F401

__all__ = ["AttributeWhitelists"]
