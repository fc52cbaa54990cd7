"""Run inspection and workflow commands."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from schemas.requests import RunCreateRequest, RunEditRequest, RunFilterRequest
from schemas.responses import DatasetView, LumisectionEventView, RunView
from services.runs import RUN_STATES, RunService
from .shared import (
    actor_option,
    build_author,
    comment_option,
    emit_json,
    load_payload,
    open_registry,
    registry_errors,
)


app = typer.Typer(
    help="Show, create and move runs",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


def _service() -> RunService:
    return RunService(open_registry())


@app.command("show", help="Show the merged attributes of a run")
def show_run(run_number: int = typer.Argument(..., min=1)) -> None:
    with registry_errors():
        run = _service().get_run(run_number)
    emit_json(RunView.from_record(run).model_dump())


@app.command("list", help="List the most recent runs")
def list_runs(
    limit: int = typer.Option(50, "--limit", min=1, help="Maximum number of runs"),
) -> None:
    runs = _service().list_runs(limit=limit)
    emit_json([RunView.from_record(run).model_dump() for run in runs])


@app.command("filter", help="Filter, sort and paginate runs")
def filter_runs(
    request_file: Path | None = typer.Argument(
        None, exists=True, dir_okay=False, readable=True, help="JSON/YAML filter request"
    ),
    page: int | None = typer.Option(None, "--page", min=0, help="Zero-based page"),
    page_size: int | None = typer.Option(None, "--page-size", min=1, help="Runs per page"),
    significant: bool = typer.Option(False, "--significant", help="Only significant runs"),
) -> None:
    payload = (load_payload(request_file) if request_file else None) or {}
    if not isinstance(payload, dict):
        raise typer.BadParameter("A filter request must be a mapping")
    if page is not None:
        payload["page"] = page
    if page_size is not None:
        payload["page_size"] = page_size
    if significant:
        payload["significant_only"] = True
    try:
        request = RunFilterRequest.model_validate(payload)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    with registry_errors():
        result = _service().filter_runs(request)
    emit_json(
        {
            "runs": [RunView.from_record(run).model_dump() for run in result.runs],
            "count": result.count,
            "pages": result.pages,
            "page": result.page,
        }
    )


@app.command("datasets", help="Show the datasets of a run")
def run_datasets(
    run_number: int = typer.Argument(..., min=1),
    dataset: str | None = typer.Option(None, "--dataset", "-d", help="Only this dataset"),
) -> None:
    service = _service()
    if dataset is None:
        records = service.list_datasets(run_number)
        emit_json([DatasetView.from_record(record).model_dump() for record in records])
        return
    record = service.get_dataset(run_number, dataset)
    if record is None:
        typer.echo(f"Error: dataset {dataset} of run {run_number} not found", err=True)
        raise typer.Exit(code=1)
    emit_json(DatasetView.from_record(record).model_dump())


@app.command("history", help="Show every run event with its author")
def run_history(run_number: int = typer.Argument(..., min=1)) -> None:
    emit_json(_service().get_run_history(run_number))


@app.command("new", help="Register a run from a JSON/YAML request file")
def new_run(
    request_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    actor: str | None = actor_option(),
    comment: str = comment_option(),
) -> None:
    try:
        request = RunCreateRequest.model_validate(load_payload(request_file))
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    service = _service()
    with registry_errors():
        event = service.new_run(
            request.oms_attributes,
            request.rr_attributes,
            request.oms_lumisections,
            request.rr_lumisections,
            build_author(actor, comment),
        )
        run = service.get_run(event.run_number)
    emit_json(RunView.from_record(run).model_dump())


@app.command("edit", help="Apply a reviewer edit to an OPEN run")
def edit_run(
    run_number: int = typer.Argument(..., min=1),
    request_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    actor: str | None = actor_option(),
    comment: str = comment_option(),
) -> None:
    try:
        request = RunEditRequest.model_validate(load_payload(request_file))
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    with registry_errors():
        result = _service().edit_run(
            run_number,
            oms_attributes=request.oms_attributes,
            rr_attributes=request.rr_attributes,
            oms_lumisections=request.oms_lumisections,
            rr_lumisections=request.rr_lumisections,
            author=build_author(actor, comment),
        )
    emit_json(
        {
            "run": RunView.from_record(result.run).model_dump(),
            "rr_lumisection_events": [
                LumisectionEventView.from_record(event).model_dump()
                for event in result.rr_lumisection_events
            ],
            "oms_lumisection_events": [
                LumisectionEventView.from_record(event).model_dump()
                for event in result.oms_lumisection_events
            ],
            "run_version": result.run_event.version if result.run_event else None,
        }
    )


@app.command("move", help=f"Move a run to another state ({'|'.join(RUN_STATES)})")
def move_run(
    run_number: int = typer.Argument(..., min=1),
    to_state: str = typer.Argument(..., metavar="STATE"),
    actor: str | None = actor_option(),
    comment: str = comment_option(),
) -> None:
    with registry_errors():
        run = _service().move_run(run_number, to_state.upper(), build_author(actor, comment))
    emit_json(RunView.from_record(run).model_dump())


@app.command("significant", help="Mark an OPEN run as significant")
def mark_significant(
    run_number: int = typer.Argument(..., min=1),
    actor: str | None = actor_option(),
    comment: str = comment_option(),
) -> None:
    with registry_errors():
        run = _service().mark_significant(run_number, build_author(actor, comment))
    emit_json(RunView.from_record(run).model_dump())


__all__ = ["app"]
