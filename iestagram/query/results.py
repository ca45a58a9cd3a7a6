"""
Result and error types for the IEstagram query layer.

Every forced query resolves to a QueryResponse. Failures never escape the
builder as exceptions; they are carried in the ``error`` field instead.

Result shapes:
- select/insert/update/delete: data is a list of row dicts
- single-row mode: data is one row dict, or None when nothing matched
- count mode: data is None and count holds the cardinality
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

Row = Dict[str, Any]


# =============================================================================
# Errors
# =============================================================================

class QueryError(Exception):
    """Base class for errors raised inside the query layer."""
    pass


class CompileError(QueryError):
    """A query could not be compiled into a SQL statement."""
    pass


class UnknownTableError(QueryError):
    """The in-memory store has no table with the requested name."""

    def __init__(self, table: str):
        super().__init__(f"Unknown table: {table}")
        self.table = table


# =============================================================================
# Response
# =============================================================================

@dataclass
class QueryResponse:
    """
    Outcome of a single forced query.

    Attributes:
        data: Row list, single row (or None) in single mode, None in count mode
        error: The failure cause, or None on success
        count: Number of matching rows, only set in count mode
    """
    data: Union[List[Row], Row, None] = None
    error: Optional[BaseException] = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        """True when the query succeeded."""
        return self.error is None

    @classmethod
    def rows(cls, rows: List[Row], single: bool = False) -> "QueryResponse":
        """Shape a row list, collapsing to first-or-None in single mode."""
        if single:
            return cls(data=rows[0] if rows else None)
        return cls(data=rows)

    @classmethod
    def counted(cls, count: int) -> "QueryResponse":
        return cls(data=None, count=count)

    @classmethod
    def failed(cls, error: BaseException) -> "QueryResponse":
        return cls(data=None, error=error)

    def raise_for_error(self) -> "QueryResponse":
        """Raise the carried error, if any; otherwise return self."""
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the ``{data, error, count?}`` wire shape."""
        result: Dict[str, Any] = {
            'data': self.data,
            'error': str(self.error) if self.error is not None else None,
        }
        if self.count is not None:
            result['count'] = self.count
        return result

    def __repr__(self):
        if self.error is not None:
            return f"QueryResponse(error={self.error!r})"
        if self.count is not None:
            return f"QueryResponse(count={self.count})"
        if isinstance(self.data, list):
            return f"QueryResponse(rows={len(self.data)})"
        return f"QueryResponse(data={self.data!r})"
