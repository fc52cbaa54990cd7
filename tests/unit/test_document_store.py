import sqlite3

import pytest

from core.errors import DocumentInternFailure
from lumisections.attributes import deep_equal
from persistence.documents import DocumentStore
from persistence.hashing import document_hash, stable_json_dumps


class _StaleLookupStore(DocumentStore):
    """Reports a miss for the first ``misses`` lookups, as a racing writer would see."""

    def __init__(self, store, misses: int) -> None:
        super().__init__(store)
        self.misses = misses

    def _lookup(self, conn: sqlite3.Connection, content_hash: str) -> int | None:
        if self.misses > 0:
            self.misses -= 1
            return None
        return DocumentStore._lookup(conn, content_hash)


def _insert_winner(conn: sqlite3.Connection, document: dict) -> int:
    cur = conn.execute(
        "INSERT INTO attribute_documents (content_hash, document_json) VALUES (?, ?)",
        (document_hash(document), stable_json_dumps(document)),
    )
    return int(cur.lastrowid)


def test_intern_returns_same_id_for_equal_documents(store) -> None:
    documents = DocumentStore(store)

    first = documents.intern({"dt-dt": {"status": "GOOD", "comment": "", "cause": ""}})
    second = documents.intern({"dt-dt": {"cause": "", "comment": "", "status": "GOOD"}})

    assert first == second
    assert documents.count() == 1


def test_intern_distinguishes_different_documents(store) -> None:
    documents = DocumentStore(store)

    first = documents.intern({"beam1_present": True})
    second = documents.intern({"beam1_present": 1})
    third = documents.intern({"beam1_present": False})

    assert len({first, second, third}) == 3


def test_get_and_fetch_many(store) -> None:
    documents = DocumentStore(store)
    first = documents.intern({"a": 1})
    second = documents.intern({"b": [1, 2]})

    record = documents.get(first)
    assert record is not None
    assert record.document == {"a": 1}
    assert record.content_hash == document_hash({"a": 1})
    assert documents.get(9999) is None
    assert documents.fetch_many([second, first, first]) == {first: {"a": 1}, second: {"b": [1, 2]}}
    assert documents.fetch_many([]) == {}


def test_intern_within_unit_of_work_rolls_back(store) -> None:
    documents = DocumentStore(store)

    with pytest.raises(RuntimeError):
        with store.transaction() as uow:
            documents.intern({"a": 1}, uow=uow)
            raise RuntimeError("abort")

    assert documents.count() == 0


def test_intern_rejects_non_mapping(store) -> None:
    with pytest.raises(TypeError):
        DocumentStore(store).intern(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_intern_treats_integral_floats_like_ints(store) -> None:
    documents = DocumentStore(store)
    assert deep_equal({"a": 1, "b": [2]}, {"a": 1.0, "b": [2.0]})

    first = documents.intern({"a": 1, "b": [2]})
    second = documents.intern({"a": 1.0, "b": [2.0]})
    third = documents.intern({"a": 1.5, "b": [2]})

    assert first == second
    assert third != first
    assert documents.fetch_many([first]) == {first: {"a": 1, "b": [2]}}


def test_intern_reads_back_winner_after_conflict(store) -> None:
    documents = _StaleLookupStore(store, misses=1)
    document = {"dt-dt": {"status": "GOOD", "comment": "", "cause": ""}}

    with store.transaction() as uow:
        winner = _insert_winner(uow.conn, document)
        assert documents.intern(document, uow=uow) == winner

    assert documents.count() == 1


def test_intern_fails_when_winner_cannot_be_read(store) -> None:
    documents = _StaleLookupStore(store, misses=2)
    document = {"cms-cms": {"status": "BAD", "comment": "", "cause": ""}}

    with pytest.raises(DocumentInternFailure):
        with store.transaction() as uow:
            _insert_winner(uow.conn, document)
            documents.intern(document, uow=uow)

    assert documents.count() == 0
