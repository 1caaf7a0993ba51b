"""
Query Selectors

DESIGN DECISION: Queries are plain mappings evaluated in Python, in the
style of document-store selectors:

    {"account_id": "acc_1"}
    {"type": "expense", "date": {"$gte": start, "$lte": end}}
    {"category": {"$in": ["food", "rent"]}}

Every top-level field condition must match (implicit AND). A callable
predicate may be passed instead of a mapping for anything the operators
cannot express. We are not building a query planner; collections are
small and fully scanned.
"""

import math
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional, Union


Predicate = Callable[[Mapping[str, Any]], bool]
Selector = Union[Mapping[str, Any], Predicate, None]

_MISSING = object()


class QueryError(ValueError):
    """Malformed selector."""
    pass


def _canonical(value: Any) -> Any:
    # Stored money is Decimal; compare caller floats by their shortest repr
    if isinstance(value, float) and math.isfinite(value):
        return Decimal(repr(value))
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_canonical(item) for item in value]
    return value


def _comparable(a: Any, b: Any) -> bool:
    numeric = (int, float, Decimal)
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if isinstance(a, numeric) and isinstance(b, numeric):
        return True
    return type(a) is type(b)


def _ordered(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, operand: Any) -> bool:
        if value is _MISSING or value is None or not _comparable(value, operand):
            return False
        return op(value, operand)
    return check


def _in(value: Any, operand: Any) -> bool:
    if not isinstance(operand, (list, tuple, set, frozenset)):
        raise QueryError("$in expects a list")
    return value is not _MISSING and value in operand


def _nin(value: Any, operand: Any) -> bool:
    if not isinstance(operand, (list, tuple, set, frozenset)):
        raise QueryError("$nin expects a list")
    return value is _MISSING or value not in operand


def _exists(value: Any, operand: Any) -> bool:
    present = value is not _MISSING and value is not None
    return present if operand else not present


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda value, operand: value is not _MISSING and value == operand,
    "$ne": lambda value, operand: value is _MISSING or value != operand,
    "$gt": _ordered(lambda a, b: a > b),
    "$gte": _ordered(lambda a, b: a >= b),
    "$lt": _ordered(lambda a, b: a < b),
    "$lte": _ordered(lambda a, b: a <= b),
    "$in": _in,
    "$nin": _nin,
    "$exists": _exists,
}


def _matches_condition(value: Any, condition: Any) -> bool:
    value = _canonical(value)
    if isinstance(condition, Mapping) and condition and all(
        isinstance(key, str) and key.startswith("$") for key in condition
    ):
        for op, operand in condition.items():
            check = OPERATORS.get(op)
            if check is None:
                raise QueryError(f"Unknown operator: {op}")
            if not check(value, _canonical(operand)):
                return False
        return True
    return value is not _MISSING and value == _canonical(condition)


def matches(record: Mapping[str, Any], selector: Selector) -> bool:
    """Check a single record against a selector."""
    if selector is None:
        return True
    if callable(selector):
        return bool(selector(record))
    if not isinstance(selector, Mapping):
        raise QueryError(f"Selector must be a mapping or callable, got {type(selector).__name__}")
    return all(
        _matches_condition(record.get(field, _MISSING), condition)
        for field, condition in selector.items()
    )


def _sort_key(field: str) -> Callable[[Mapping[str, Any]], tuple]:
    # Records missing the field sort first in ascending order
    def key(record: Mapping[str, Any]) -> tuple:
        value = record.get(field)
        return (value is not None, value if value is not None else 0)
    return key


def apply_query(
    records: Iterable[Mapping[str, Any]],
    selector: Selector = None,
    *,
    sort_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> list:
    """
    Filter, sort and limit records.

    Sorting is stable, so records with equal keys keep their input order.
    """
    if limit is not None and limit < 0:
        raise QueryError("limit cannot be negative")

    results = [record for record in records if matches(record, selector)]
    if sort_by is not None:
        results.sort(key=_sort_key(sort_by), reverse=descending)
    if limit is not None:
        results = results[:limit]
    return results
