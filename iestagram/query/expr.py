"""
Predicate model for the IEstagram query layer.

Predicates are the filter conditions accumulated by a query builder. Each
one can be evaluated directly against a row dict (in-memory backend) or
rendered into a SQL WHERE fragment (SQL backend). Both renditions follow
SQL semantics, so the two backends agree:

- Eq(field, value):      field = value   (value None -> IS NULL)
- Neq(field, value):     field != value  (NULL never matches)
- In(field, values):     field IN (...)  (empty set never matches)
- ILike(field, pattern): case-insensitive LIKE with % and _ wildcards
- Or(conditions):        (c1 OR c2 OR ...)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol
import re


class SqlContext(Protocol):
    """What a predicate needs from the compiler to render itself."""

    native_ilike: bool

    def column(self, name: str) -> str:
        """Return the (validated, possibly qualified) column reference."""
        ...

    def param(self, value: Any) -> str:
        """Register a bound value and return its placeholder."""
        ...


# =============================================================================
# Predicates
# =============================================================================

class Predicate(ABC):
    """Base class for all predicates."""

    @abstractmethod
    def evaluate(self, row: Dict[str, Any]) -> bool:
        """Evaluate this predicate against a row."""
        pass

    @abstractmethod
    def to_sql(self, ctx: SqlContext) -> str:
        """Render as a SQL WHERE clause fragment."""
        pass

    @property
    def forces_empty(self) -> bool:
        """True if this predicate can never match any row."""
        return False


@dataclass
class Eq(Predicate):
    """Equality."""
    field: str
    value: Any

    def evaluate(self, row: Dict[str, Any]) -> bool:
        actual = row.get(self.field)
        if self.value is None:
            return actual is None
        return actual is not None and actual == self.value

    def to_sql(self, ctx: SqlContext) -> str:
        if self.value is None:
            return f"{ctx.column(self.field)} IS NULL"
        return f"{ctx.column(self.field)} = {ctx.param(self.value)}"

    def __repr__(self):
        return f"Eq({self.field} = {self.value!r})"


@dataclass
class Neq(Predicate):
    """Inequality. Rows where the field is NULL never match."""
    field: str
    value: Any

    def evaluate(self, row: Dict[str, Any]) -> bool:
        actual = row.get(self.field)
        if self.value is None:
            return actual is not None
        return actual is not None and actual != self.value

    def to_sql(self, ctx: SqlContext) -> str:
        if self.value is None:
            return f"{ctx.column(self.field)} IS NOT NULL"
        return f"{ctx.column(self.field)} != {ctx.param(self.value)}"

    def __repr__(self):
        return f"Neq({self.field} != {self.value!r})"


@dataclass
class In(Predicate):
    """
    Set membership.

    An empty value set never matches; at the top level of a query it forces
    the whole result empty.
    """
    field: str
    values: List[Any] = field(default_factory=list)

    def __post_init__(self):
        # Order and duplicates are irrelevant; keep the first occurrence.
        seen = []
        for v in self.values:
            if v not in seen:
                seen.append(v)
        self.values = seen

    @property
    def forces_empty(self) -> bool:
        return not self.values

    def evaluate(self, row: Dict[str, Any]) -> bool:
        actual = row.get(self.field)
        if actual is None:
            return False
        return actual in self.values

    def to_sql(self, ctx: SqlContext) -> str:
        if not self.values:
            return "1 = 0"
        placeholders = ', '.join(ctx.param(v) for v in self.values)
        return f"{ctx.column(self.field)} IN ({placeholders})"

    def __repr__(self):
        return f"In({self.field} in {self.values!r})"


@dataclass
class ILike(Predicate):
    """
    Case-insensitive LIKE.

    ``%`` matches any run of characters, ``_`` exactly one; everything else
    matches literally. The pattern is anchored at both ends.
    """
    field: str
    pattern: Optional[str]
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    @property
    def regex(self) -> re.Pattern:
        if self._regex is None:
            self._regex = like_to_regex(str(self.pattern))
        return self._regex

    def evaluate(self, row: Dict[str, Any]) -> bool:
        value = row.get(self.field)
        # LIKE NULL is unknown, never true
        if self.pattern is None or not isinstance(value, str):
            return False
        return self.regex.fullmatch(value) is not None

    def to_sql(self, ctx: SqlContext) -> str:
        column = ctx.column(self.field)
        placeholder = ctx.param(self.pattern)
        if ctx.native_ilike:
            return f"{column} ILIKE {placeholder}"
        return f"LOWER({column}) LIKE LOWER({placeholder})"

    def __repr__(self):
        return f"ILike({self.field} ~ {self.pattern!r})"


@dataclass
class Or(Predicate):
    """
    Disjunction of subconditions (Eq, Neq or In).

    Conjoins with every other predicate of the query.
    """
    conditions: List[Predicate] = field(default_factory=list)

    def evaluate(self, row: Dict[str, Any]) -> bool:
        return any(c.evaluate(row) for c in self.conditions)

    def to_sql(self, ctx: SqlContext) -> str:
        if not self.conditions:
            return "1 = 0"
        return f"({' OR '.join(c.to_sql(ctx) for c in self.conditions)})"

    def __repr__(self):
        return f"Or({self.conditions})"


# =============================================================================
# Helpers
# =============================================================================

def like_to_regex(pattern: str) -> re.Pattern:
    """Translate a SQL LIKE pattern into a case-insensitive regex."""
    parts = []
    for char in pattern:
        if char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile(''.join(parts), re.IGNORECASE | re.DOTALL)


def split_predicates(predicates: Iterable[Predicate]) -> tuple[List[Predicate], List[Or]]:
    """Partition predicates into regular ones and OR groups."""
    regular: List[Predicate] = []
    groups: List[Or] = []
    for p in predicates:
        if isinstance(p, Or):
            groups.append(p)
        else:
            regular.append(p)
    return regular, groups


def condition(field_name: str, op: str, value: Any) -> Optional[Predicate]:
    """Build an OR subcondition from its parts; None for unknown operators."""
    if op == 'eq':
        return Eq(field_name, value)
    if op == 'neq':
        return Neq(field_name, value)
    if op == 'in':
        return In(field_name, list(value))
    return None
