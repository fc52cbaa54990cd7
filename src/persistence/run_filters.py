"""Translate run filter documents into SQL over the ``runs`` projection.

A filter is a mapping from field to condition. Fields are ``run_number``,
``version`` or a dotted path into ``oms_attributes`` / ``rr_attributes``
(``rr_attributes.class``, ``rr_attributes.dt-dt.status``). A condition is
either a plain value (equality) or a mapping of operators to values, all of
which must hold. The keys ``and`` / ``or`` take a list of nested filters.

    {"run_number": {">=": 320000},
     "or": [{"rr_attributes.class": {"like": "%Collisions%"}},
            {"rr_attributes.significant": True}]}
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from core.errors import InvalidFilterError

_PLAIN_COLUMNS = ("run_number", "version")
_JSON_COLUMNS = ("oms_attributes", "rr_attributes")

_OPERATORS = {
    "=": "=",
    "<>": "<>",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
    # SQLite LIKE is case-insensitive for ASCII.
    "like": "LIKE",
    "notlike": "NOT LIKE",
}

_CONNECTIVES = {"and": " AND ", "or": " OR "}

DEFAULT_SORTINGS: tuple[tuple[str, str], ...] = (("run_number", "DESC"),)


def field_expression(field: str) -> tuple[str, list[Any]]:
    """Return the SQL expression (and its parameters) that reads ``field``."""
    if field in _PLAIN_COLUMNS:
        return field, []
    column, _, path = field.partition(".")
    if column not in _JSON_COLUMNS or not path:
        raise InvalidFilterError(f"Unknown run field {field!r}")
    segments = path.split(".")
    if any(not segment or '"' in segment for segment in segments):
        raise InvalidFilterError(f"Malformed attribute path {field!r}")
    json_path = "$" + "".join(f'."{segment}"' for segment in segments)
    return f"json_extract({column}, ?)", [json_path]


def compile_filter(filter_document: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """Return a WHERE fragment and its parameters; an empty filter matches everything."""
    if not filter_document:
        return "1 = 1", []
    if not isinstance(filter_document, Mapping):
        raise InvalidFilterError("A run filter must be a mapping")
    clauses: list[str] = []
    params: list[Any] = []
    for key, condition in filter_document.items():
        connective = _CONNECTIVES.get(str(key).lower())
        if connective is not None:
            clause, clause_params = _compile_group(key, condition, connective)
        else:
            clause, clause_params = _compile_condition(key, condition)
        clauses.append(clause)
        params.extend(clause_params)
    return " AND ".join(f"({clause})" for clause in clauses), params


def compile_sortings(sortings: Sequence[Sequence[str]] | None) -> tuple[str, list[Any]]:
    """Return an ORDER BY fragment; ``run_number DESC`` when nothing is given."""
    parts: list[str] = []
    params: list[Any] = []
    by_run_number = False
    for sorting in sortings or DEFAULT_SORTINGS:
        if len(sorting) != 2:
            raise InvalidFilterError(f"A sorting is a [field, direction] pair, got {sorting!r}")
        field, direction = sorting
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise InvalidFilterError(f"Unknown sort direction {direction!r}")
        expression, expression_params = field_expression(field)
        parts.append(f"{expression} {direction}")
        params.extend(expression_params)
        by_run_number = by_run_number or field == "run_number"
    # Ties break on run number so pages never overlap.
    if not by_run_number:
        parts.append("run_number DESC")
    return ", ".join(parts), params


def _compile_group(key: str, nested: Any, connective: str) -> tuple[str, list[Any]]:
    if not isinstance(nested, (list, tuple)) or not nested:
        raise InvalidFilterError(f"{key!r} expects a non-empty list of filters")
    clauses: list[str] = []
    params: list[Any] = []
    for item in nested:
        clause, clause_params = compile_filter(item)
        clauses.append(f"({clause})")
        params.extend(clause_params)
    return connective.join(clauses), params


def _compile_condition(field: str, condition: Any) -> tuple[str, list[Any]]:
    expression, expression_params = field_expression(field)
    if not isinstance(condition, Mapping):
        condition = {"=": condition}
    if not condition:
        raise InvalidFilterError(f"Empty condition for {field!r}")
    clauses: list[str] = []
    params: list[Any] = []
    for operator, value in condition.items():
        sql_operator = _OPERATORS.get(str(operator).lower())
        if sql_operator is None:
            raise InvalidFilterError(f"Unknown operator {operator!r} for {field!r}")
        if isinstance(value, (Mapping, list, tuple)):
            raise InvalidFilterError(f"Operator {operator!r} on {field!r} needs a scalar value")
        params.extend(expression_params)
        if value is None:
            if sql_operator not in ("=", "<>"):
                raise InvalidFilterError(f"Operator {operator!r} on {field!r} cannot compare to null")
            clauses.append(f"{expression} IS {'NOT ' if sql_operator == '<>' else ''}NULL")
            continue
        clauses.append(f"{expression} {sql_operator} ?")
        params.append(value)
    return " AND ".join(clauses), params


__all__ = ["DEFAULT_SORTINGS", "compile_filter", "compile_sortings", "field_expression"]
