"""
Fluent query builder for the IEstagram query layer.

Example:
    response = await (client.from_('posts')
        .select('*, users:user_id(id, username, avatar_url)')
        .in_('user_id', following_ids)
        .order('created_at', ascending=False)
        .limit(50))

    if response.error:
        ...
    for post in response.data:
        print(post['title'], post['users']['username'])

Every configuration call returns the same builder. Awaiting the builder
(or ``await builder.execute()``) dispatches the accumulated QuerySpec to the
executor the builder was created with, exactly once per call.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional, Sequence, Union

from .ast import TIMESTAMP_FIELDS, OrderSpec, QuerySpec, table_info
from .executor import Executor, parse_datetime
from .expr import Eq, ILike, In, Neq
from .parser import parse_or, parse_projection
from .results import QueryResponse

Payload = Union[Dict[str, Any], Sequence[Dict[str, Any]]]


def generate_id() -> str:
    """Opaque unique row id."""
    return str(uuid.uuid4())


def canonical_timestamp(value: Any) -> Any:
    """
    Rewrite an ISO-8601 value as ``YYYY-MM-DDTHH:MM:SS.ffffff+00:00``.

    Offsets are converted to UTC and microseconds are always written, so
    comparing the strings orders them by time. Values that do not parse
    are returned unchanged.
    """
    dt = parse_datetime(value)
    if dt is None:
        return value
    return dt.astimezone(timezone.utc).isoformat(timespec='microseconds')


def normalize_timestamps(row: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a row with its timestamp fields in canonical form."""
    prepared = dict(row)
    for name in TIMESTAMP_FIELDS:
        if prepared.get(name) is not None:
            prepared[name] = canonical_timestamp(prepared[name])
    return prepared


def utc_now() -> str:
    """Current time as a canonical ISO-8601 string."""
    return canonical_timestamp(datetime.now(timezone.utc))


def with_defaults(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a row, adding the server-generated fields its table expects."""
    info = table_info(table)
    prepared = normalize_timestamps(row)
    if info.synthetic_id and not prepared.get('id'):
        prepared['id'] = generate_id()
    if info.timestamped and not prepared.get('created_at'):
        prepared['created_at'] = utc_now()
    return prepared


class QueryBuilder:
    """
    Accumulates one QuerySpec and forces it against an executor.

    The builder never raises on its own; failures surface as
    ``QueryResponse.error`` once the query is forced.
    """

    def __init__(self, table: str, executor: Executor):
        self._spec = QuerySpec(table=table)
        self._executor = executor
        self._insert_payload: Optional[List[Dict[str, Any]]] = None

    @property
    def spec(self) -> QuerySpec:
        """The accumulated spec (do not mutate)."""
        return self._spec

    @property
    def table(self) -> str:
        return self._spec.table

    # -------------------------------------------------------------------------
    # Projection
    # -------------------------------------------------------------------------

    def select(
        self,
        columns: Union[str, Sequence[str]] = "*",
        count: Optional[str] = None,
        head: bool = False,
    ) -> "QueryBuilder":
        """
        Set the projection.

        Args:
            columns: ``*``, a comma-separated field list, or fields plus one
                ``relation:foreign_key(fields)`` expansion
            count: Any value (e.g. ``"exact"``) switches to count mode
            head: Accepted for compatibility; count mode never returns rows
        """
        self._spec.projection = parse_projection(columns)
        if count is not None:
            self._spec.count = count
        return self

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def eq(self, field: str, value: Any) -> "QueryBuilder":
        self._spec.predicates.append(Eq(field, value))
        return self

    def neq(self, field: str, value: Any) -> "QueryBuilder":
        self._spec.predicates.append(Neq(field, value))
        return self

    def in_(self, field: str, values: Optional[Sequence[Any]]) -> "QueryBuilder":
        """Set membership. An empty list makes the whole query match nothing."""
        self._spec.predicates.append(In(field, list(values or [])))
        return self

    def or_(self, conditions: str) -> "QueryBuilder":
        """
        Add a disjunction such as ``email.eq.a@b.c,username.eq.alice``.

        Malformed clauses are dropped; if none parse, the call is a no-op.
        """
        group = parse_or(conditions)
        if group is not None:
            self._spec.predicates.append(group)
        return self

    def ilike(self, field: str, pattern: str) -> "QueryBuilder":
        self._spec.predicates.append(ILike(field, pattern))
        return self

    # -------------------------------------------------------------------------
    # Ordering and pagination
    # -------------------------------------------------------------------------

    def order(self, field: str, ascending: bool = True) -> "QueryBuilder":
        """Order by one field; a later call replaces an earlier one."""
        self._spec.order = OrderSpec(field=field, ascending=ascending)
        return self

    def limit(self, n: int) -> "QueryBuilder":
        self._spec.limit = n
        return self

    def single(self) -> "QueryBuilder":
        """Return one row (or None) instead of a list."""
        self._spec.single = True
        return self

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def insert(self, payload: Payload) -> "QueryBuilder":
        """Insert one row or a list of rows; defaults are added on execution."""
        rows = [payload] if isinstance(payload, dict) else list(payload)
        self._insert_payload = [dict(row) for row in rows]
        self._spec.insert_rows = []
        return self

    def update(self, values: Dict[str, Any]) -> "QueryBuilder":
        """Shallow-merge ``values`` into every matching row."""
        self._spec.update_values = normalize_timestamps(values)
        return self

    def delete(self) -> "QueryBuilder":
        self._spec.delete = True
        return self

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self) -> QueryResponse:
        """Force the query. Mutations must not be forced twice."""
        if self._insert_payload is not None:
            self._spec.insert_rows = [with_defaults(self.table, row) for row in self._insert_payload]
        return await self._executor.execute(self._spec)

    def __await__(self) -> Generator[Any, None, QueryResponse]:
        return self.execute().__await__()

    def __repr__(self):
        return f"QueryBuilder({self._spec!r}, executor={self._executor.name})"
