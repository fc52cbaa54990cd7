import pytest

from lumisections.attributes import ALL_ATTRIBUTES, deep_equal
from lumisections.ranges import LumisectionRange, compact, expand


def test_compact_scenario_two_ranges() -> None:
    lumisections = [{"a": 1}, {"a": 1}, {"a": 2}, {"a": 2}, {"a": 2}]

    ranges = compact(lumisections, ALL_ATTRIBUTES)

    assert [item.as_dict() for item in ranges] == [
        {"a": 1, "start": 1, "end": 2},
        {"a": 2, "start": 3, "end": 5},
    ]


def test_compact_empty_input() -> None:
    assert compact([]) == []


def test_compact_partitions_and_is_maximal() -> None:
    lumisections = [
        {"a": 1},
        {"a": 2},
        {"a": 2},
        {"a": 1},
        {"a": 1},
        {"a": 1},
        {"a": 3},
    ]

    ranges = compact(lumisections)

    assert ranges[0].start == 1
    assert ranges[-1].end == len(lumisections)
    for previous, current in zip(ranges, ranges[1:]):
        assert current.start == previous.end + 1
        assert not deep_equal(previous.attributes, current.attributes)
    assert sum(item.length for item in ranges) == len(lumisections)


def test_compact_restricts_to_whitelist() -> None:
    lumisections = [{"a": 1, "b": 1}, {"a": 1, "b": 2}, {"a": 2, "b": 2}]

    ranges = compact(lumisections, ["a"])

    assert [item.as_dict() for item in ranges] == [
        {"a": 1, "start": 1, "end": 2},
        {"a": 2, "start": 3, "end": 3},
    ]


def test_compact_ignores_key_order() -> None:
    lumisections = [{"a": 1, "b": {"x": 1, "y": 2}}, {"b": {"y": 2, "x": 1}, "a": 1}]

    assert len(compact(lumisections)) == 1


def test_compact_distinguishes_booleans_from_numbers() -> None:
    assert len(compact([{"a": True}, {"a": 1}])) == 2


def test_expand_inverts_compact() -> None:
    lumisections = [{"a": 1}, {"a": 1}, {"a": 2}, {"a": 1}]

    assert expand(compact(lumisections)) == lumisections


def test_expand_rejects_gaps() -> None:
    ranges = [
        LumisectionRange(start=1, end=2, attributes={"a": 1}),
        LumisectionRange(start=4, end=5, attributes={"a": 2}),
    ]

    with pytest.raises(ValueError, match="not contiguous"):
        expand(ranges)


@pytest.mark.parametrize("start,end", [(0, 3), (5, 4)])
def test_range_rejects_invalid_bounds(start: int, end: int) -> None:
    with pytest.raises(ValueError):
        LumisectionRange(start=start, end=end)
