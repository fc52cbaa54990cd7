"""Attribute document helpers: whitelisting, structural equality and merging."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

ALL_ATTRIBUTES: tuple[str, ...] = ("*",)

Whitelist = Sequence[str]


def empty_component() -> dict[str, str]:
    """Return a fresh placeholder for a component without a recorded value."""
    return {"status": "EMPTY", "comment": "", "cause": ""}


def is_all_attributes(whitelist: Whitelist | None) -> bool:
    if whitelist is None:
        return True
    return len(whitelist) > 0 and whitelist[0] == "*"


def restrict(document: Mapping[str, Any], whitelist: Whitelist | None) -> dict[str, Any]:
    """Keep only whitelisted keys; the ``*`` whitelist keeps everything."""
    if is_all_attributes(whitelist):
        return dict(document)
    return {key: document[key] for key in whitelist if key in document}  # type: ignore[union-attr]


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality over JSON-like values.

    Mapping key order is irrelevant, sequence order is not, and booleans never
    equal numbers.
    """
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(deep_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (Mapping, list, tuple)) or isinstance(right, (Mapping, list, tuple)):
        return False
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


def merge_documents(documents: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge documents given in ascending version order, last write wins per key."""
    merged: dict[str, Any] = {}
    for document in documents:
        merged.update(document)
    return merged


def changed_attributes(
    previous: Mapping[str, Any], current: Mapping[str, Any]
) -> dict[str, Any]:
    """Return the keys of ``current`` whose value differs from ``previous``."""
    return {
        key: value
        for key, value in current.items()
        if key not in previous or not deep_equal(previous[key], value)
    }


__all__ = [
    "ALL_ATTRIBUTES",
    "Whitelist",
    "changed_attributes",
    "deep_equal",
    "empty_component",
    "is_all_attributes",
    "merge_documents",
    "restrict",
]
