"""Configuration inspection commands."""

from __future__ import annotations

from typing import Any

import typer

from core.config import Settings, get_settings
from lumisections.whitelists import get_whitelists
from .shared import emit_json


app = typer.Typer(
    help="Inspect the effective configuration",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("show", help="Show the effective settings")
def show_config(
    json_out: bool = typer.Option(True, "--json/--no-json", help="Print JSON"),
) -> None:
    payload = get_settings().model_dump(mode="json")
    if json_out:
        emit_json(payload)
        return
    for key, value in payload.items():
        typer.echo(f"{key}={value}")


@app.command("diff", help="Show settings that differ from their defaults")
def diff_config() -> None:
    defaults = _settings_defaults()
    current = get_settings().model_dump(mode="json")
    diff: dict[str, dict[str, Any]] = {}
    for key, value in current.items():
        default = defaults.get(key)
        if value != default:
            diff[key] = {"value": value, "default": default}
    emit_json(diff)


@app.command("whitelists", help="Show the attribute whitelists per lumisection source")
def show_whitelists() -> None:
    whitelists = get_whitelists(get_settings().whitelists_path)
    emit_json(whitelists.model_dump())


def _settings_defaults() -> dict[str, Any]:
    defaults: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        defaults[name] = field.default
    return defaults


__all__ = ["app"]
