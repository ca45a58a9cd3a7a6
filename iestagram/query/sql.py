"""
SQL backend for the IEstagram query layer.

SqlCompiler turns a QuerySpec into a single parameterized statement:

    INSERT INTO t (k1, k2) VALUES ($1, $2) RETURNING *
    UPDATE t SET k1 = $1 WHERE ... RETURNING *
    DELETE FROM t WHERE ... RETURNING *
    SELECT COUNT(*) AS count FROM t WHERE ...
    SELECT ... FROM t LEFT JOIN r ON t.fk = r.id WHERE ... ORDER BY ... LIMIT $n

Placeholders are numbered across the whole statement in emission order.
SqlExecutor runs the statement through SQLAlchemy and reshapes the rows so
they look exactly like the in-memory backend's output.
"""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .ast import Operation, QuerySpec, RelationSpec
from .executor import Executor
from .results import CompileError, QueryError, QueryResponse, Row

if TYPE_CHECKING:
    from iestagram.db import Database

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

PARAMSTYLES = ('numeric', 'named')


def identifier(name: str) -> str:
    """Validate a table or column name for direct inclusion in SQL."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise CompileError(f"Invalid identifier: {name!r}")
    return name


# =============================================================================
# Statement
# =============================================================================

@dataclass
class Statement:
    """A compiled SQL string and its positional parameters."""
    sql: str
    params: List[Any] = field(default_factory=list)

    @property
    def bindings(self) -> Dict[str, Any]:
        """Parameters keyed by name, for the ``named`` paramstyle."""
        return {f"p{i}": value for i, value in enumerate(self.params, 1)}

    def __str__(self):
        return self.sql


class _Context:
    """Per-statement compile state: bound values and column qualification."""

    def __init__(self, paramstyle: str, native_ilike: bool, qualifier: Optional[str] = None):
        self.paramstyle = paramstyle
        self.native_ilike = native_ilike
        self.qualifier = qualifier
        self.params: List[Any] = []

    def column(self, name: str) -> str:
        identifier(name)
        if self.qualifier:
            return f"{self.qualifier}.{name}"
        return name

    def param(self, value: Any) -> str:
        self.params.append(value)
        n = len(self.params)
        if self.paramstyle == 'named':
            return f":p{n}"
        return f"${n}"


# =============================================================================
# Compiler
# =============================================================================

class SqlCompiler:
    """
    Compiles query specs into parameterized SQL.

    Args:
        dialect: SQLAlchemy dialect name; ``postgresql`` gets native ILIKE,
            everything else ``LOWER(x) LIKE LOWER(y)``
        paramstyle: ``numeric`` ($1, $2) or ``named`` (:p1, :p2)
        columns: Lookup of a table's column names, needed to expand a
            relation written with ``*``
    """

    def __init__(
        self,
        dialect: str = "postgresql",
        paramstyle: str = "numeric",
        columns: Optional[Callable[[str], List[str]]] = None,
    ):
        if paramstyle not in PARAMSTYLES:
            raise ValueError(f"Unsupported paramstyle: {paramstyle}")
        self.dialect = dialect
        self.paramstyle = paramstyle
        self.columns = columns

    @property
    def native_ilike(self) -> bool:
        return self.dialect in ('postgresql', 'postgres')

    def _context(self, qualifier: Optional[str] = None) -> _Context:
        return _Context(self.paramstyle, self.native_ilike, qualifier)

    def compile(self, spec: QuerySpec) -> Statement:
        """Compile a spec according to its operation mode."""
        identifier(spec.table)
        op = spec.operation
        if op == Operation.INSERT:
            return self.compile_insert(spec)
        if op == Operation.UPDATE:
            return self.compile_update(spec)
        if op == Operation.DELETE:
            return self.compile_delete(spec)
        if spec.is_count:
            return self.compile_count(spec)
        return self.compile_select(spec)

    def _where(self, spec: QuerySpec, ctx: _Context) -> str:
        if not spec.predicates:
            return ""
        clauses = [p.to_sql(ctx) for p in spec.predicates]
        return " WHERE " + " AND ".join(clauses)

    def compile_insert(self, spec: QuerySpec) -> Statement:
        rows = spec.insert_rows or []
        keys: List[str] = []
        for row in rows:
            for key in row:
                if key not in keys:
                    keys.append(identifier(key))
        if not keys:
            raise CompileError(f"Nothing to insert into {spec.table}")

        ctx = self._context()
        groups = []
        for row in rows:
            placeholders = ', '.join(ctx.param(row.get(k)) for k in keys)
            groups.append(f"({placeholders})")

        sql = f"INSERT INTO {spec.table} ({', '.join(keys)}) VALUES {', '.join(groups)} RETURNING *"
        return Statement(sql, ctx.params)

    def compile_update(self, spec: QuerySpec) -> Statement:
        if not spec.update_values:
            raise CompileError(f"Nothing to update in {spec.table}")

        ctx = self._context()
        assignments = ', '.join(
            f"{identifier(k)} = {ctx.param(v)}" for k, v in spec.update_values.items()
        )
        if not spec.predicates:
            logger.warning(f"Update on {spec.table} has no filter; every row will change")

        sql = f"UPDATE {spec.table} SET {assignments}{self._where(spec, ctx)} RETURNING *"
        return Statement(sql, ctx.params)

    def compile_delete(self, spec: QuerySpec) -> Statement:
        ctx = self._context()
        sql = f"DELETE FROM {spec.table}{self._where(spec, ctx)} RETURNING *"
        return Statement(sql, ctx.params)

    def compile_count(self, spec: QuerySpec) -> Statement:
        ctx = self._context()
        sql = f"SELECT COUNT(*) AS count FROM {spec.table}{self._where(spec, ctx)}"
        return Statement(sql, ctx.params)

    def relation_fields(self, relation: RelationSpec) -> List[str]:
        """Concrete field list of a relation expansion."""
        if '*' not in relation.fields:
            return [identifier(f) for f in relation.fields]
        if self.columns is None:
            raise CompileError(f"Cannot expand {relation.table}(*) without column metadata")
        return [identifier(f) for f in self.columns(relation.table)]

    def compile_select(self, spec: QuerySpec) -> Statement:
        projection = spec.projection
        relation = projection.relation
        table = spec.table

        if relation is not None:
            identifier(relation.table)
            identifier(relation.foreign_key)
            if relation.table == table:
                raise CompileError(f"Self-referencing expansion on {table} is not supported")

        ctx = self._context(qualifier=table if relation else None)

        if projection.is_wildcard:
            select_list = [f"{table}.*" if relation else "*"]
        elif relation:
            select_list = [f"{ctx.column(f)} AS {f}" for f in projection.fields]
        else:
            select_list = [ctx.column(f) for f in projection.fields]

        join = ""
        if relation is not None:
            rel = relation.table
            for f in self.relation_fields(relation):
                select_list.append(f"{rel}.{f} AS {relation.alias(f)}")
            select_list.append(f"{rel}.id AS {_marker(relation)}")
            join = f" LEFT JOIN {rel} ON {table}.{relation.foreign_key} = {rel}.id"

        sql = f"SELECT {', '.join(select_list)} FROM {table}{join}"
        sql += self._where(spec, ctx)

        if spec.order is not None:
            nulls = "NULLS FIRST" if spec.order.ascending else "NULLS LAST"
            sql += f" ORDER BY {ctx.column(spec.order.field)} {spec.order.direction} {nulls}"

        limit = spec.effective_limit
        if limit is not None:
            sql += f" LIMIT {ctx.param(max(int(limit), 0))}"

        return Statement(sql, ctx.params)


def _marker(relation: RelationSpec) -> str:
    """Alias of the column telling whether the joined row exists."""
    return f"{relation.table}__key"


# =============================================================================
# Result reshaping
# =============================================================================

def normalize_value(value: Any) -> Any:
    """Bring driver values to the in-memory representation."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def reshape_row(row: Dict[str, Any], relation: Optional[RelationSpec], fields: List[str]) -> Row:
    """Normalize values and fold aliased relation columns into a nested dict."""
    result = {key: normalize_value(value) for key, value in row.items()}
    if relation is None:
        return result

    nested = {f: result.pop(relation.alias(f), None) for f in fields}
    present = result.pop(_marker(relation), None) is not None
    result[relation.table] = nested if present else None
    return result


# =============================================================================
# Executor
# =============================================================================

class SqlExecutor(Executor):
    """
    Runs compiled statements against a Database.

    The blocking SQLAlchemy call is moved off the event loop with
    ``asyncio.to_thread``; one statement per query, one transaction per
    statement.
    """

    name = "sql"

    def __init__(self, db: "Database", compiler: Optional[SqlCompiler] = None):
        self.db = db
        self.compiler = compiler or SqlCompiler(
            dialect=db.dialect,
            paramstyle='named',
            columns=db.columns,
        )

    async def execute(self, spec: QuerySpec) -> QueryResponse:
        try:
            return await asyncio.to_thread(self.run, spec)
        except (QueryError, SQLAlchemyError) as e:
            logger.error(f"SQL {spec.operation.value} on {spec.table} failed: {e}")
            return QueryResponse.failed(e)
        except Exception as e:
            logger.exception(f"Unexpected error in SQL {spec.operation.value} on {spec.table}")
            return QueryResponse.failed(e)

    def run(self, spec: QuerySpec) -> QueryResponse:
        """Execute synchronously; raises QueryError or SQLAlchemyError."""
        if spec.forces_empty and spec.operation == Operation.SELECT:
            if spec.is_count:
                return QueryResponse.counted(0)
            return QueryResponse.rows([], single=spec.single)

        stmt = self.compiler.compile(spec)
        logger.debug(f"SQL: {stmt.sql} params={stmt.params}")

        with self.db.session() as session:
            result = session.execute(text(stmt.sql), stmt.bindings)

            if spec.is_count:
                return QueryResponse.counted(int(result.scalar_one()))

            raw_rows = [dict(m) for m in result.mappings().all()]

        relation = None
        fields: List[str] = []
        if spec.operation == Operation.SELECT and spec.projection.relation is not None:
            relation = spec.projection.relation
            fields = self.compiler.relation_fields(relation)

        rows = [reshape_row(row, relation, fields) for row in raw_rows]
        return QueryResponse.rows(rows, single=spec.single)
