"""Differential updates between a stored and a newly observed lumisection sequence."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from core.errors import LengthMismatchError
from lumisections.attributes import ALL_ATTRIBUTES, Whitelist, deep_equal, restrict
from lumisections.ranges import LumisectionRange


def diff_lumisections(
    previous: Sequence[Mapping[str, Any]],
    observed: Sequence[Mapping[str, Any]],
    whitelist: Whitelist = ALL_ATTRIBUTES,
    *,
    run_number: int | None = None,
    dataset_name: str | None = None,
) -> list[LumisectionRange]:
    """Return the fewest ranges that bring ``previous`` to ``observed``.

    Unchanged stretches produce nothing. A mismatch opens a range carrying the
    observed value, which keeps growing while the following observed values
    equal it, whether or not they also equal the stored ones.
    """
    if len(previous) != len(observed):
        raise LengthMismatchError(
            len(previous),
            len(observed),
            run_number=run_number,
            dataset_name=dataset_name,
        )

    ranges: list[LumisectionRange] = []
    open_start: int | None = None
    open_value: dict[str, Any] = {}

    for number, (stored, incoming) in enumerate(zip(previous, observed), start=1):
        new_value = restrict(incoming, whitelist)
        if open_start is not None:
            if deep_equal(open_value, new_value):
                continue
            ranges.append(LumisectionRange(start=open_start, end=number - 1, attributes=open_value))
            open_start = None
        if not deep_equal(restrict(stored, whitelist), new_value):
            open_start = number
            open_value = new_value

    if open_start is not None:
        ranges.append(LumisectionRange(start=open_start, end=len(observed), attributes=open_value))
    return ranges


__all__ = ["diff_lumisections"]
