from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from core.config import Settings, get_settings
from persistence.sqlite_store import SqliteStore
from services.changes import ChangeAuthor
from services.registry import Registry


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Settings]:
    monkeypatch.setenv("REGISTRY_DB_PATH", str(tmp_path / "registry.sqlite"))
    monkeypatch.setenv("TRANSACTION_RETRY_MAX_WAIT", "0")
    monkeypatch.delenv("WHITELISTS_PATH", raising=False)
    monkeypatch.delenv("DEFAULT_DATASET_NAME", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def registry(settings: Settings) -> Registry:
    return Registry.from_settings(settings)


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    return SqliteStore(tmp_path / "store.sqlite")


@pytest.fixture
def author() -> ChangeAuthor:
    return ChangeAuthor(actor="shifter@cern.ch", comment="initial")
