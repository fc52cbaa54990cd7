"""Lumisection read and write commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from core.config import get_settings
from schemas.responses import LumisectionEventView
from services.lumisections import LumisectionService
from .shared import (
    actor_option,
    build_author,
    comment_option,
    emit_json,
    load_payload,
    open_registry,
    parse_source,
    parse_whitelist,
    registry_errors,
)


app = typer.Typer(
    help="Read and write lumisection attributes",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


def _service() -> LumisectionService:
    return LumisectionService(open_registry())


def _dataset_option() -> Any:
    return typer.Option(None, "--dataset", help="Dataset name (default: settings)")


def _source_option() -> Any:
    return typer.Option("rr", "--source", help="Lumisection source: oms|rr")


def _resolve_dataset(dataset: str | None) -> str:
    return dataset or get_settings().default_dataset_name


def _load_sequence(path: Path) -> list[dict]:
    payload = load_payload(path)
    if isinstance(payload, dict):
        payload = payload.get("lumisections")
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise typer.BadParameter(f"{path} must hold a list of lumisection objects")
    return payload


@app.command("show", help="Show the merged value of every lumisection")
def show_lumisections(
    run_number: int = typer.Argument(..., min=1),
    dataset: str | None = _dataset_option(),
    source: str = _source_option(),
) -> None:
    emit_json(
        _service().get_lumisections(run_number, _resolve_dataset(dataset), parse_source(source))
    )


@app.command("ranges", help="Show lumisections compacted into ranges")
def show_ranges(
    run_number: int = typer.Argument(..., min=1),
    dataset: str | None = _dataset_option(),
    source: str = _source_option(),
    whitelist: list[str] | None = typer.Option(
        None,
        "--attribute",
        "-a",
        help="Only compare these attributes (repeatable or comma separated)",
    ),
) -> None:
    ranges = _service().get_lumisection_ranges(
        run_number,
        _resolve_dataset(dataset),
        parse_source(source),
        parse_whitelist(whitelist),
    )
    emit_json([item.as_dict() for item in ranges])


@app.command("history", help="Show every lumisection event with its author")
def show_history(
    run_number: int = typer.Argument(..., min=1),
    dataset: str | None = _dataset_option(),
    source: str = _source_option(),
) -> None:
    emit_json(
        _service().get_lumisection_history(
            run_number, _resolve_dataset(dataset), parse_source(source)
        )
    )


@app.command("create", help="Store a full lumisection sequence from a JSON/YAML file")
def create_lumisections(
    run_number: int = typer.Argument(..., min=1),
    sequence_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    dataset: str | None = _dataset_option(),
    source: str = _source_option(),
    signed_off: bool = typer.Option(
        False, "--signed-off", help="Keep every attribute (reviewer source only)"
    ),
    actor: str | None = actor_option(),
    comment: str = comment_option(),
) -> None:
    lumisections = _load_sequence(sequence_file)
    service = _service()
    author = build_author(actor, comment)
    dataset_name = _resolve_dataset(dataset)
    with registry_errors():
        if signed_off:
            events = service.create_signed_off_lumisections(
                run_number, dataset_name, lumisections, author
            )
        else:
            events = service.create_lumisections(
                run_number, dataset_name, lumisections, parse_source(source), author
            )
    emit_json([LumisectionEventView.from_record(event).model_dump() for event in events])


@app.command("update", help="Write only the ranges that differ from the stored state")
def update_lumisections(
    run_number: int = typer.Argument(..., min=1),
    sequence_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    dataset: str | None = _dataset_option(),
    source: str = _source_option(),
    actor: str | None = actor_option(),
    comment: str = comment_option(),
) -> None:
    lumisections = _load_sequence(sequence_file)
    with registry_errors():
        events = _service().update_lumisections(
            run_number,
            _resolve_dataset(dataset),
            lumisections,
            parse_source(source),
            build_author(actor, comment),
        )
    emit_json([LumisectionEventView.from_record(event).model_dump() for event in events])


__all__ = ["app"]
