"""Load attribute whitelists from YAML."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml

from lumisections.attributes import ALL_ATTRIBUTES
from persistence.models import LumisectionSource
from schemas.internal.whitelists import AttributeWhitelists

DEFAULT_WHITELISTS = Path(__file__).resolve().parent / "whitelists.yaml"


def load_whitelists(path: Path | str | None = None) -> AttributeWhitelists:
    """Load and validate attribute whitelists from YAML."""
    resolved = Path(path) if path else DEFAULT_WHITELISTS
    if not resolved.exists():
        raise FileNotFoundError(f"Attribute whitelists not found: {resolved}")

    raw = yaml.safe_load(resolved.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Attribute whitelists must be a YAML mapping")

    return AttributeWhitelists.model_validate(raw)


@lru_cache(maxsize=2)
def get_whitelists(path: str | None = None) -> AttributeWhitelists:
    """Return cached whitelists for reuse across services."""
    resolved: Path | None = Path(path) if path else None
    return load_whitelists(resolved)


def whitelist_for(
    source: LumisectionSource | str,
    whitelists: AttributeWhitelists | None = None,
) -> tuple[str, ...]:
    """Return the whitelist of a source; ``"*"`` selects every attribute."""
    if source == "*":
        return ALL_ATTRIBUTES
    resolved = whitelists or get_whitelists()
    return tuple(getattr(resolved, LumisectionSource(source).value))


__all__ = ["DEFAULT_WHITELISTS", "get_whitelists", "load_whitelists", "whitelist_for"]
