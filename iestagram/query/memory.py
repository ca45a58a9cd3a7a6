"""
In-memory backend for the IEstagram query layer.

MemoryStore holds one ordered list of row dicts per table. MemoryExecutor
interprets a QuerySpec directly against those lists, without compiling it
to any intermediate form. It is meant for hermetic tests: access is assumed
single-threaded, and each call runs to completion without suspending, so a
mutation is never observed half-done.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .ast import TABLES, Operation, Projection, QuerySpec
from .executor import Executor, PredicateEvaluator, sort_rows
from .results import QueryError, QueryResponse, Row, UnknownTableError

logger = logging.getLogger(__name__)


# =============================================================================
# Store
# =============================================================================

class MemoryStore:
    """
    Table name -> list of rows, in insertion order.

    Each test should own its store (or call ``reset()`` between cases);
    nothing here is process-global.
    """

    def __init__(self, tables: Optional[Iterable[str]] = None):
        names = list(tables) if tables is not None else list(TABLES)
        self._tables: Dict[str, List[Row]] = {name: [] for name in names}

    @property
    def table_names(self) -> List[str]:
        return list(self._tables)

    def table(self, name: str) -> List[Row]:
        """The live row list of a table."""
        try:
            return self._tables[name]
        except KeyError:
            raise UnknownTableError(name) from None

    def replace(self, name: str, rows: List[Row]) -> None:
        """Swap a table's contents in a single assignment."""
        self.table(name)
        self._tables[name] = rows

    def rows(self, name: str) -> List[Row]:
        """Copies of a table's rows."""
        return [dict(row) for row in self.table(name)]

    def seed(self, name: str, rows: Iterable[Dict[str, Any]]) -> None:
        """Append copies of the given rows to a table, as-is."""
        self.table(name).extend(dict(row) for row in rows)

    def reset(self) -> None:
        """Empty every table."""
        for name in self._tables:
            self._tables[name] = []

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._tables.values())

    def __repr__(self):
        sizes = ', '.join(f"{name}={len(rows)}" for name, rows in self._tables.items())
        return f"MemoryStore({sizes})"


# =============================================================================
# Executor
# =============================================================================

class MemoryExecutor(Executor):
    """Interprets query specs against a MemoryStore."""

    name = "memory"

    def __init__(self, store: Optional[MemoryStore] = None):
        self.store = store if store is not None else MemoryStore()

    async def execute(self, spec: QuerySpec) -> QueryResponse:
        try:
            return self.run(spec)
        except QueryError as e:
            logger.error(f"In-memory {spec.operation.value} on {spec.table} failed: {e}")
            return QueryResponse.failed(e)
        except Exception as e:
            logger.exception(f"Unexpected error in in-memory {spec.operation.value} on {spec.table}")
            return QueryResponse.failed(e)

    def run(self, spec: QuerySpec) -> QueryResponse:
        """Execute synchronously; raises QueryError on failure."""
        op = spec.operation
        if op == Operation.DELETE:
            return QueryResponse.rows(self._delete(spec), single=spec.single)
        if op == Operation.UPDATE:
            return QueryResponse.rows(self._update(spec), single=spec.single)
        if op == Operation.INSERT:
            return QueryResponse.rows(self._insert(spec), single=spec.single)
        return self._select(spec)

    def _delete(self, spec: QuerySpec) -> List[Row]:
        evaluator = PredicateEvaluator(spec)
        deleted: List[Row] = []
        remaining: List[Row] = []

        for row in self.store.table(spec.table):
            if evaluator.matches(row):
                deleted.append(row)
            else:
                remaining.append(row)

        self.store.replace(spec.table, remaining)
        logger.debug(f"Deleted {len(deleted)} row(s) from {spec.table}")
        return [dict(row) for row in deleted]

    def _update(self, spec: QuerySpec) -> List[Row]:
        evaluator = PredicateEvaluator(spec)
        rows = self.store.table(spec.table)
        updated: List[Row] = []

        for index, row in enumerate(rows):
            if evaluator.matches(row):
                merged = {**row, **spec.update_values}
                rows[index] = merged
                updated.append(dict(merged))

        logger.debug(f"Updated {len(updated)} row(s) in {spec.table}")
        return updated

    def _insert(self, spec: QuerySpec) -> List[Row]:
        rows = self.store.table(spec.table)
        inserted = [dict(row) for row in spec.insert_rows]
        rows.extend(inserted)
        return [dict(row) for row in inserted]

    def _select(self, spec: QuerySpec) -> QueryResponse:
        table = self.store.table(spec.table)
        rows = PredicateEvaluator(spec).filter(table)

        if spec.is_count:
            return QueryResponse.counted(len(rows))

        rows = sort_rows(rows, spec.order)

        limit = spec.effective_limit
        if limit is not None:
            rows = rows[:max(limit, 0)]

        rows = [self._project(row, spec.projection) for row in rows]
        return QueryResponse.rows(rows, single=spec.single)

    def _project(self, row: Row, projection: Projection) -> Row:
        result = projection.apply(row)
        relation = projection.relation
        if relation is None:
            return result

        candidates = self.store.table(relation.table)
        key = row.get(relation.foreign_key)
        related = None
        if key is not None:
            for candidate in candidates:
                if candidate.get('id') == key:
                    related = candidate
                    break

        if related is None:
            result[relation.table] = None
        elif '*' in relation.fields:
            result[relation.table] = dict(related)
        else:
            result[relation.table] = {f: related.get(f) for f in relation.fields}
        return result
