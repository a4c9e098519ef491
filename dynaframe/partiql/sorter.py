"""
Client-side item sorting.

Used when DynamoDB could not order the result itself.  The sort is a stable
insertion sort with a strict nulls-last policy: a missing attribute or a NULL
value always sorts after every concrete value, whatever the direction.
"""
from __future__ import annotations

from typing import NamedTuple, Sequence

from dynaframe.core.logging import get_logger
from dynaframe.engine.attribute_value import SourceRow, SourceValue, ValueKind

logger = get_logger(__name__)

HEURISTIC_SORT_FIELDS = ("timestamp", "created_at", "createdAt", "date", "time")


class ClientSort(NamedTuple):
    field: str
    direction: str
    source: str  # explicit | native_fallback | heuristic


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _is_null(value: SourceValue | None) -> bool:
    return value is None or value.kind is ValueKind.NULL


def compare_values(a: SourceValue, b: SourceValue) -> int | None:
    """Three-way comparison of two non-null values; ``None`` when the pair has no order."""
    if a.kind is ValueKind.S and b.kind is ValueKind.S:
        return _cmp(a.value, b.value)
    if a.kind is ValueKind.N and b.kind is ValueKind.N:
        try:
            return _cmp(float(a.value), float(b.value))
        except ValueError:
            return _cmp(a.value, b.value)
    if a.kind is ValueKind.BOOL and b.kind is ValueKind.BOOL:
        return _cmp(a.value, b.value)
    return None


def _less(a: SourceValue | None, b: SourceValue | None, descending: bool) -> bool:
    if _is_null(a):
        return False
    if _is_null(b):
        return True
    result = compare_values(a, b)
    if result is None:
        return False
    return result > 0 if descending else result < 0


def sort_items(items: list[SourceRow], field: str, direction: str = "asc") -> None:
    """Sort ``items`` in place by ``field``; ``direction`` is ``asc`` or ``desc``."""
    if not field or len(items) < 2:
        return
    descending = direction.strip().lower() == "desc"
    for i in range(1, len(items)):
        j = i
        while j > 0 and _less(items[j].get(field), items[j - 1].get(field), descending):
            items[j], items[j - 1] = items[j - 1], items[j]
            j -= 1


def resolve_sort_field(
    items: Sequence[SourceRow],
    *,
    sort_by: str = "",
    sort_direction: str = "asc",
    scan_index_forward: bool | None = None,
    native_applied: bool = False,
    fallback_field: str = "",
) -> ClientSort | None:
    """Pick the client-side sort to apply, if any.

    Priority: an explicit ``sort_by`` always wins; then the planner's
    fallback field when native ordering was requested but not achieved; then
    the first of ``HEURISTIC_SORT_FIELDS`` present in the first row.
    """
    if len(items) < 2:
        return None
    if sort_by:
        return ClientSort(sort_by, sort_direction or "asc", "explicit")
    if scan_index_forward is None or native_applied:
        return None

    direction = "asc" if scan_index_forward else "desc"
    if fallback_field:
        return ClientSort(fallback_field, direction, "native_fallback")

    first = items[0]
    for candidate in HEURISTIC_SORT_FIELDS:
        if candidate in first:
            logger.info("Sorting by heuristic field | field=%s", candidate)
            return ClientSort(candidate, direction, "heuristic")
    return None
