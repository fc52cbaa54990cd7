import pytest

from persistence.hashing import document_hash, hash_payload, sha256_bytes, stable_json_dumps


def test_hash_payload_stable_order() -> None:
    payload_a = {"b": 1, "a": 2}
    payload_b = {"a": 2, "b": 1}
    assert hash_payload(payload_a) == hash_payload(payload_b)


def test_document_hash_ignores_nested_key_order() -> None:
    first = {"dt-dt": {"status": "GOOD", "comment": "", "cause": ""}, "cms-cms": {"status": "BAD"}}
    second = {"cms-cms": {"status": "BAD"}, "dt-dt": {"cause": "", "comment": "", "status": "GOOD"}}

    assert document_hash(first) == document_hash(second)
    assert document_hash(first) != document_hash({"dt-dt": {"status": "GOOD"}})


def test_document_hash_distinguishes_booleans() -> None:
    assert document_hash({"a": True}) != document_hash({"a": 1})


def test_stable_json_dumps_is_compact() -> None:
    assert stable_json_dumps({"b": [1, 2], "a": "é"}) == '{"a":"\\u00e9","b":[1,2]}'
    assert sha256_bytes(b"example") == sha256_bytes(b"example")


def test_document_hash_rejects_non_mapping() -> None:
    with pytest.raises(TypeError):
        document_hash([("a", 1)])  # type: ignore[arg-type]


def test_document_hash_normalises_integral_floats() -> None:
    assert document_hash({"a": 1.0, "b": {"c": [2.0]}}) == document_hash({"a": 1, "b": {"c": [2]}})
    assert document_hash({"a": 1.5}) != document_hash({"a": 1})
    assert document_hash({"a": True}) != document_hash({"a": 1.0})
