import json
from pathlib import Path

from typer.testing import CliRunner

from cli.app import app
from cli.commands import config as config_command
from cli.commands import lumisections as lumisections_command
from cli.commands import runs as runs_command


def _triplet(status: str) -> dict[str, str]:
    return {"status": status, "comment": "", "cause": ""}


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert result.stdout.strip()


def test_config_show(settings) -> None:
    result = CliRunner().invoke(config_command.app, ["show"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["registry_db_path"] == settings.registry_db_path
    assert payload["default_dataset_name"] == "online"


def test_config_whitelists(settings) -> None:
    result = CliRunner().invoke(config_command.app, ["whitelists"])

    assert result.exit_code == 0
    assert "dt-dt" in json.loads(result.stdout)["rr"]


def test_runs_workflow(settings, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("REGISTRY_ACTOR", "shifter@cern.ch")
    runner = CliRunner()
    request = _write(
        tmp_path / "run.json",
        {
            "oms_attributes": {"run_number": 316187},
            "rr_attributes": {"state": "OPEN", "class": "Collisions18"},
            "oms_lumisections": [{"beam1_present": True}, {"beam1_present": True}],
            "rr_lumisections": [{"dt-dt": _triplet("GOOD")}, {"dt-dt": _triplet("GOOD")}],
        },
    )

    created = runner.invoke(runs_command.app, ["new", str(request), "--comment", "new run"])
    assert created.exit_code == 0, created.output
    assert json.loads(created.stdout)["run_number"] == 316187

    moved = runner.invoke(runs_command.app, ["move", "316187", "signoff"])
    assert moved.exit_code == 0, moved.output
    assert json.loads(moved.stdout)["rr_attributes"]["state"] == "SIGNOFF"

    listed = runner.invoke(runs_command.app, ["list"])
    assert [run["run_number"] for run in json.loads(listed.stdout)] == [316187]

    history = runner.invoke(runs_command.app, ["history", "316187"])
    assert [item["actor"] for item in json.loads(history.stdout)] == ["shifter@cern.ch"] * 2

    filter_request = _write(
        tmp_path / "filter.json",
        {"filter": {"rr_attributes.state": "SIGNOFF"}, "sortings": [["run_number", "ASC"]]},
    )
    filtered = runner.invoke(runs_command.app, ["filter", str(filter_request), "--page-size", "10"])
    assert filtered.exit_code == 0, filtered.output
    payload = json.loads(filtered.stdout)
    assert [run["run_number"] for run in payload["runs"]] == [316187]
    assert (payload["count"], payload["pages"]) == (1, 1)

    significant = runner.invoke(runs_command.app, ["filter", "--significant"])
    assert json.loads(significant.stdout)["runs"] == []

    datasets = runner.invoke(runs_command.app, ["datasets", "316187"])
    assert [item["dataset_name"] for item in json.loads(datasets.stdout)] == ["online"]

    missing = runner.invoke(runs_command.app, ["datasets", "316187", "--dataset", "offline"])
    assert missing.exit_code == 1


def test_runs_show_missing_run_fails(settings) -> None:
    result = CliRunner().invoke(runs_command.app, ["show", "42"])

    assert result.exit_code == 1


def test_lumisections_create_update_and_ranges(settings, tmp_path: Path) -> None:
    runner = CliRunner()
    initial = _write(tmp_path / "initial.json", [{"dt-dt": _triplet("GOOD")}] * 4)
    observed = _write(
        tmp_path / "observed.json",
        {"lumisections": [{"dt-dt": _triplet("GOOD")}] * 2 + [{"dt-dt": _triplet("BAD")}] * 2},
    )

    created = runner.invoke(
        lumisections_command.app,
        ["create", "1", str(initial), "--actor", "shifter@cern.ch"],
    )
    assert created.exit_code == 0, created.output
    assert json.loads(created.stdout) == [
        {"version": 1, "run_number": 1, "dataset_name": "online", "source": "rr", "start": 1, "end": 4}
    ]

    updated = runner.invoke(
        lumisections_command.app,
        ["update", "1", str(observed), "--actor", "reviewer@cern.ch", "--comment", "dt"],
    )
    assert updated.exit_code == 0, updated.output
    assert [(item["start"], item["end"]) for item in json.loads(updated.stdout)] == [(3, 4)]

    ranges = runner.invoke(lumisections_command.app, ["ranges", "1"])
    assert [
        (item["start"], item["end"], item["dt-dt"]["status"]) for item in json.loads(ranges.stdout)
    ] == [(1, 2, "GOOD"), (3, 4, "BAD")]

    history = runner.invoke(lumisections_command.app, ["history", "1"])
    assert [item["actor"] for item in json.loads(history.stdout)] == [
        "shifter@cern.ch",
        "reviewer@cern.ch",
    ]


def test_lumisections_write_without_actor_fails(settings, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("REGISTRY_ACTOR", raising=False)
    sequence = _write(tmp_path / "sequence.json", [{"dt-dt": _triplet("GOOD")}])

    result = CliRunner().invoke(lumisections_command.app, ["create", "1", str(sequence)])

    assert result.exit_code == 1
    assert "actor" in result.output


def test_lumisections_unknown_source(settings) -> None:
    result = CliRunner().invoke(lumisections_command.app, ["show", "1", "--source", "dqm"])

    assert result.exit_code != 0
