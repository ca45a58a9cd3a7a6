"""
Query AST for the IEstagram query layer.

A QuerySpec is the mutable state a QueryBuilder accumulates before it is
handed to an executor. It is created fresh for every ``from_(table)`` call,
mutated by the fluent chain, consumed once, and discarded.

Example spec structure:
    QuerySpec(
        table='posts',
        projection=Projection(fields=['*'], relation=RelationSpec('users', 'user_id', ['id', 'username'])),
        predicates=[In('user_id', ['u1', 'u2'])],
        order=OrderSpec('created_at', ascending=False),
        limit=50,
    )
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .expr import Predicate


# =============================================================================
# Table metadata
# =============================================================================

@dataclass(frozen=True)
class TableInfo:
    """
    Server-side defaults for a table.

    Attributes:
        name: Table name
        synthetic_id: Whether rows get a generated ``id`` when none is given
        timestamped: Whether rows get a generated ``created_at``
        key: Fields identifying a row
    """
    name: str
    synthetic_id: bool = True
    timestamped: bool = False
    key: tuple = ('id',)


TABLES: Dict[str, TableInfo] = {
    'users': TableInfo('users'),
    'posts': TableInfo('posts', timestamped=True),
    'comments': TableInfo('comments', timestamped=True),
    'follows': TableInfo('follows', synthetic_id=False, key=('follower_id', 'following_id')),
    'likes': TableInfo('likes', synthetic_id=False, key=('user_id', 'post_id')),
}


# Stored as fixed-width UTC ISO-8601 text, so text order is time order
TIMESTAMP_FIELDS = ('created_at', 'updated_at')


def table_info(name: str) -> TableInfo:
    """Metadata for a table; unknown tables get no generated defaults."""
    return TABLES.get(name, TableInfo(name, synthetic_id=False))


# =============================================================================
# Operation mode
# =============================================================================

class Operation(Enum):
    """What a query does when forced."""
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


# =============================================================================
# Projection
# =============================================================================

@dataclass
class RelationSpec:
    """
    A single foreign-key expansion: ``users:user_id(id, username)``.

    The related row is the one in ``table`` whose ``id`` equals the base
    row's ``foreign_key``; it is nested under ``table`` on each result row.
    """
    table: str
    foreign_key: str
    fields: List[str] = field(default_factory=list)

    def alias(self, field_name: str) -> str:
        """Flat column alias used for a related field in SQL results."""
        return f"{self.table}_{field_name}"

    def __repr__(self):
        return f"RelationSpec({self.table}:{self.foreign_key}({', '.join(self.fields)}))"


@dataclass
class Projection:
    """
    Requested result shape.

    ``fields`` holds either ``['*']`` or explicit field names. ``relation``
    is the optional foreign-key expansion.
    """
    fields: List[str] = field(default_factory=lambda: ['*'])
    relation: Optional[RelationSpec] = None

    @property
    def is_wildcard(self) -> bool:
        return '*' in self.fields or not self.fields

    def apply(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Restrict a row to the projected base fields (copying it)."""
        if self.is_wildcard:
            return dict(row)
        return {f: row.get(f) for f in self.fields}

    def __repr__(self):
        parts = list(self.fields)
        if self.relation:
            parts.append(repr(self.relation))
        return f"Projection({', '.join(parts)})"


# =============================================================================
# Ordering
# =============================================================================

@dataclass
class OrderSpec:
    """Single order clause; the builder keeps only the last one."""
    field: str
    ascending: bool = True

    @property
    def direction(self) -> str:
        return "ASC" if self.ascending else "DESC"

    def __repr__(self):
        return f"OrderSpec({self.field} {self.direction.lower()})"


# =============================================================================
# QuerySpec
# =============================================================================

@dataclass
class QuerySpec:
    """
    Everything a builder has accumulated for one query.

    The operation mode is resolved at execution time by priority:
    delete > update > insert > select.
    """

    table: str

    projection: Projection = field(default_factory=Projection)

    # Filter predicates (AND-ed together; Or groups included)
    predicates: List[Predicate] = field(default_factory=list)

    order: Optional[OrderSpec] = None
    limit: Optional[int] = None

    # Mutations
    insert_rows: Optional[List[Dict[str, Any]]] = None
    update_values: Optional[Dict[str, Any]] = None
    delete: bool = False

    # Modifiers
    count: Optional[str] = None
    single: bool = False

    @property
    def operation(self) -> Operation:
        if self.delete:
            return Operation.DELETE
        if self.update_values is not None:
            return Operation.UPDATE
        if self.insert_rows is not None:
            return Operation.INSERT
        return Operation.SELECT

    @property
    def is_count(self) -> bool:
        """Count mode only applies to plain selects."""
        return self.count is not None and self.operation == Operation.SELECT

    @property
    def effective_limit(self) -> Optional[int]:
        """Row cap after single-row mode is taken into account."""
        if self.single:
            return 1 if self.limit is None else min(self.limit, 1)
        return self.limit

    @property
    def forces_empty(self) -> bool:
        """True if a top-level predicate (an empty IN) can match nothing."""
        return any(p.forces_empty for p in self.predicates)

    def __repr__(self):
        parts = [f"table={self.table}", f"op={self.operation.value}"]
        if self.predicates:
            parts.append(f"predicates={len(self.predicates)}")
        if self.order:
            parts.append(f"order={self.order}")
        if self.limit is not None:
            parts.append(f"limit={self.limit}")
        if self.count:
            parts.append(f"count={self.count}")
        if self.single:
            parts.append("single")
        return f"QuerySpec({', '.join(parts)})"
