from pathlib import Path

import pytest
from pydantic import ValidationError

from lumisections.attributes import ALL_ATTRIBUTES
from lumisections.whitelists import get_whitelists, load_whitelists, whitelist_for
from persistence.models import LumisectionSource
from schemas.internal.whitelists import AttributeWhitelists


def test_packaged_whitelists_load() -> None:
    whitelists = load_whitelists()

    assert "beam1_present" in whitelists.oms
    assert "dt-dt" in whitelists.rr
    assert get_whitelists() is get_whitelists()


def test_whitelist_for_sources() -> None:
    whitelists = AttributeWhitelists(oms=["beam1_present"], rr=["*"])

    assert whitelist_for(LumisectionSource.OMS, whitelists) == ("beam1_present",)
    assert whitelist_for("rr", whitelists) == ALL_ATTRIBUTES
    assert whitelist_for("*", whitelists) == ALL_ATTRIBUTES


def test_load_custom_file(tmp_path: Path) -> None:
    path = tmp_path / "whitelists.yaml"
    path.write_text("oms:\n  - cms_active\nrr:\n  - dt-dt\n  - csc-csc\n", encoding="utf-8")

    whitelists = load_whitelists(path)

    assert whitelists.oms == ["cms_active"]
    assert whitelists.rr == ["dt-dt", "csc-csc"]


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_whitelists(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    "payload",
    [
        {"oms": []},
        {"oms": ["*", "cms_active"]},
        {"rr": ["dt-dt", "dt-dt"]},
        {"other": ["*"]},
    ],
)
def test_invalid_whitelists_are_rejected(payload) -> None:
    with pytest.raises(ValidationError):
        AttributeWhitelists.model_validate(payload)
