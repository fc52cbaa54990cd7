import pytest

from core.errors import InvalidFilterError
from persistence.run_filters import compile_filter, compile_sortings, field_expression
from schemas.requests import RunFilterRequest
from services.runs import RunService


@pytest.fixture
def service(registry, author) -> RunService:
    service = RunService(registry)
    runs = [
        (320001, "Collisions18", "OPEN", False, 3.8),
        (320002, "Cosmics18", "OPEN", True, 0.0),
        (320003, "Collisions18", "SIGNOFF", True, 3.8),
        (320004, "Commissioning18", "COMPLETED", False, 3.8),
        (320005, "Collisions18", "OPEN", False, 3.8),
    ]
    for run_number, run_class, state, significant, b_field in runs:
        service.update_or_create_run(
            run_number,
            {"run_number": run_number, "b_field": b_field},
            {"class": run_class, "state": state, "significant": significant},
            author,
        )
    service.update_or_create_run(320005, {}, {}, author, deleted=True)
    return service


def _numbers(page) -> list[int]:
    return [run.run_number for run in page.runs]


def test_empty_filter_lists_non_deleted_runs_newest_first(service) -> None:
    page = service.filter_runs(RunFilterRequest())

    assert _numbers(page) == [320004, 320003, 320002, 320001]
    assert (page.count, page.pages, page.page) == (4, 1, 0)


def test_filter_by_attribute_and_operator(service) -> None:
    request = RunFilterRequest(
        filter={
            "rr_attributes.class": {"like": "collisions%"},
            "run_number": {">": 320001},
        }
    )

    assert _numbers(service.filter_runs(request)) == [320003]


def test_or_group_and_not_equal(service) -> None:
    request = RunFilterRequest(
        filter={
            "or": [
                {"rr_attributes.state": "COMPLETED"},
                {"oms_attributes.b_field": {"<": 1}},
            ],
            "rr_attributes.class": {"<>": "Cosmics18", "notlike": "Collisions%"},
        }
    )

    assert _numbers(service.filter_runs(request)) == [320004]


def test_significant_only(service) -> None:
    page = service.filter_runs(RunFilterRequest(significant_only=True))

    assert _numbers(page) == [320003, 320002]


def test_sortings_and_pagination(service) -> None:
    request = RunFilterRequest(
        sortings=[("rr_attributes.class", "asc")], page=1, page_size=2
    )

    page = service.filter_runs(request)

    # Page 0 holds the two Collisions18 runs.
    assert _numbers(page) == [320004, 320002]
    assert (page.count, page.pages, page.page_size) == (4, 2, 2)


def test_field_expression_quotes_attribute_paths() -> None:
    assert field_expression("run_number") == ("run_number", [])
    assert field_expression("rr_attributes.dt-dt.status") == (
        "json_extract(rr_attributes, ?)",
        ['$."dt-dt"."status"'],
    )


def test_compile_filter_handles_null_and_empty() -> None:
    assert compile_filter({}) == ("1 = 1", [])
    clause, params = compile_filter({"rr_attributes.class": None})
    assert clause == "(json_extract(rr_attributes, ?) IS NULL)"
    assert params == ['$."class"']


def test_compile_sortings_defaults_to_run_number() -> None:
    assert compile_sortings([]) == ("run_number DESC", [])
    assert compile_sortings([("version", "ASC")]) == ("version ASC, run_number DESC", [])


@pytest.mark.parametrize(
    "filter_document",
    [
        {"state": "OPEN"},
        {"rr_attributes.": "OPEN"},
        {"run_number": {"between": 1}},
        {"run_number": {">": [1, 2]}},
        {"or": []},
        {"run_number": {">": None}},
        {"run_number": {}},
    ],
)
def test_invalid_filters_are_rejected(filter_document) -> None:
    with pytest.raises(InvalidFilterError):
        compile_filter(filter_document)


def test_invalid_sort_direction_is_rejected() -> None:
    with pytest.raises(InvalidFilterError):
        compile_sortings([("run_number", "sideways")])
