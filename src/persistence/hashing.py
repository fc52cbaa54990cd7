"""Hashing helpers for content-addressed attribute documents."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping


def sha256_bytes(data: bytes) -> str:
    """Return hex sha256 of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def stable_json_dumps(payload: object) -> str:
    """Dump JSON with stable ordering for hashing."""
    return json.dumps(
        payload,
        ensure_ascii=True,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_default,
    )


def hash_payload(payload: object) -> str:
    """Return sha256 hash of a JSON-serializable payload."""
    return sha256_bytes(stable_json_dumps(payload).encode("utf-8"))


def document_hash(document: Mapping[str, Any]) -> str:
    """Return the content address of an attribute document.

    Key order does not matter: ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}``
    share one address. Integral floats hash like the matching int, so ``1``
    and ``1.0`` share one address too; booleans stay distinct from numbers.
    """
    if not isinstance(document, Mapping):
        raise TypeError(f"Attribute documents must be mappings, got {type(document).__name__}")
    return hash_payload(canonical_value(document))


def canonical_value(value: Any) -> Any:
    """Normalise a JSON-like value so structurally equal values dump identically."""
    if isinstance(value, Mapping):
        return {key: canonical_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [canonical_value(item) for item in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _json_default(value: object) -> str:
    return str(value)


__all__ = [
    "canonical_value",
    "document_hash",
    "hash_payload",
    "sha256_bytes",
    "stable_json_dumps",
]
