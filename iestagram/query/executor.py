"""
Execution strategy interface and the logic shared by all executors.

The executor handles:
- Dispatch on the operation mode of a QuerySpec
- Predicate evaluation (the reference semantics the SQL backend mirrors)
- Type-aware ordering of rows
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Dict, List, Optional

from .ast import OrderSpec, QuerySpec
from .expr import split_predicates
from .results import QueryResponse


# =============================================================================
# Executor interface
# =============================================================================

class Executor(ABC):
    """
    A backend a QueryBuilder dispatches to.

    ``execute`` must never raise: every failure is reported through
    ``QueryResponse.error``.
    """

    name = "executor"

    @abstractmethod
    async def execute(self, spec: QuerySpec) -> QueryResponse:
        """Run a fully-built spec and return its response."""
        pass

    def __repr__(self):
        return f"{type(self).__name__}()"


# =============================================================================
# Predicate Evaluator
# =============================================================================

class PredicateEvaluator:
    """
    Decides whether rows match the predicate set of a query.

    A row matches when every regular predicate holds and, for each OR
    group, at least one of its subconditions holds.
    """

    def __init__(self, spec: QuerySpec):
        self.regular, self.groups = split_predicates(spec.predicates)
        self.forces_empty = spec.forces_empty

    def matches(self, row: Dict[str, Any]) -> bool:
        if self.forces_empty:
            return False
        if not all(p.evaluate(row) for p in self.regular):
            return False
        return all(g.evaluate(row) for g in self.groups)

    def filter(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Return the matching rows, in order."""
        if self.forces_empty:
            return []
        if not self.regular and not self.groups:
            return list(rows)
        return [row for row in rows if self.matches(row)]


# =============================================================================
# Ordering
# =============================================================================

def parse_datetime(value: Any) -> Optional[datetime]:
    """Aware datetime for an ISO-8601 string (or datetime), else None. Naive means UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and len(value) >= 10:
        try:
            dt = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp(value: Any) -> Optional[float]:
    """Epoch seconds for an ISO-8601 date/time string, else None."""
    dt = parse_datetime(value)
    return dt.timestamp() if dt is not None else None


def compare_values(a: Any, b: Any) -> int:
    """
    Ascending comparison of two field values.

    None sorts first. Two timestamp strings compare by time; anything else
    by native ordering, falling back to type names for incomparable types.
    """
    if a is None and b is None:
        return 0
    if a is None:
        return -1
    if b is None:
        return 1
    if a == b:
        return 0

    ta, tb = parse_timestamp(a), parse_timestamp(b)
    if ta is not None and tb is not None:
        return (ta > tb) - (ta < tb)

    try:
        return 1 if a > b else -1
    except TypeError:
        na, nb = type(a).__name__, type(b).__name__
        return (na > nb) - (na < nb)


def sort_rows(rows: List[Dict[str, Any]], order: Optional[OrderSpec]) -> List[Dict[str, Any]]:
    """
    Stable sort by a single field.

    Missing fields count as None: first when ascending, last when descending.
    """
    if order is None:
        return rows

    def cmp(x: Dict[str, Any], y: Dict[str, Any]) -> int:
        result = compare_values(x.get(order.field), y.get(order.field))
        return result if order.ascending else -result

    return sorted(rows, key=cmp_to_key(cmp))
