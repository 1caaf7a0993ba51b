"""Query selector package."""

from moneystore.queries.selector import (
    OPERATORS,
    QueryError,
    Selector,
    apply_query,
    matches,
)

__all__ = ["OPERATORS", "QueryError", "Selector", "apply_query", "matches"]
