"""Shared helpers for CLI subcommands."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import typer
import yaml

from core.config import get_settings
from core.errors import RegistryError
from persistence.models import LumisectionSource
from services.changes import ChangeAuthor
from services.registry import Registry

ACTOR_ENV = "REGISTRY_ACTOR"


def open_registry() -> Registry:
    return Registry.from_settings(get_settings())


def emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def build_author(actor: str | None, comment: str | None) -> ChangeAuthor:
    return ChangeAuthor(actor=actor, comment=comment or "")


def parse_source(value: str) -> LumisectionSource:
    try:
        return LumisectionSource(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(source.value for source in LumisectionSource)
        raise typer.BadParameter(f"Unknown source {value!r} (choose from {choices})") from exc


def parse_whitelist(values: list[str] | None) -> tuple[str, ...] | None:
    if not values:
        return None
    cleaned = tuple(item.strip() for value in values for item in value.split(",") if item.strip())
    return cleaned or None


def load_payload(path: Path) -> Any:
    """Load a JSON or YAML request body from ``path``."""
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON in {path}: {exc}") from exc


@contextmanager
def registry_errors() -> Iterator[None]:
    """Turn registry failures into a non-zero exit with a readable message."""
    try:
        yield
    except RegistryError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def actor_option() -> Any:
    return typer.Option(
        None,
        "--actor",
        envvar=ACTOR_ENV,
        help=f"Author of the change (env {ACTOR_ENV})",
    )


def comment_option() -> Any:
    return typer.Option("", "--comment", help="Free-text reason for the change")


__all__ = [
    "ACTOR_ENV",
    "actor_option",
    "build_author",
    "comment_option",
    "emit_json",
    "load_payload",
    "open_registry",
    "parse_source",
    "parse_whitelist",
    "registry_errors",
]
