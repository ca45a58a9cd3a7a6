"""
IEstagram query layer - a fluent, backend-agnostic query builder.

This module provides:
- A predicate model (eq, neq, in, ilike, or) with SQL semantics
- A fluent, awaitable QueryBuilder
- Two interchangeable executors: compiled SQL and in-memory

Example usage:

    from iestagram.query import MemoryExecutor, MemoryStore, QueryBuilder

    store = MemoryStore()
    executor = MemoryExecutor(store)

    await QueryBuilder('users', executor).insert({'username': 'alice'})

    response = await (QueryBuilder('users', executor)
        .select('id, username')
        .ilike('username', '%ali%')
        .single())

    print(response.data['username'])

    # Count mode
    response = await (QueryBuilder('follows', executor)
        .select('*', count='exact', head=True)
        .eq('following_id', user_id))
    print(response.count)
"""

# Predicates
from .expr import (
    Predicate,
    Eq,
    Neq,
    In,
    ILike,
    Or,
    like_to_regex,
)

# Query AST
from .ast import (
    TABLES,
    TableInfo,
    Operation,
    RelationSpec,
    Projection,
    OrderSpec,
    QuerySpec,
)

# Results
from .results import (
    Row,
    QueryError,
    CompileError,
    UnknownTableError,
    QueryResponse,
)

# Parser
from .parser import (
    parse_projection,
    parse_or,
)

# Executors
from .executor import (
    Executor,
    PredicateEvaluator,
    compare_values,
    sort_rows,
)
from .memory import MemoryStore, MemoryExecutor
from .sql import Statement, SqlCompiler, SqlExecutor

# Builder
from .builder import QueryBuilder

__all__ = [
    # Predicates
    'Predicate',
    'Eq',
    'Neq',
    'In',
    'ILike',
    'Or',
    'like_to_regex',

    # Query AST
    'TABLES',
    'TableInfo',
    'Operation',
    'RelationSpec',
    'Projection',
    'OrderSpec',
    'QuerySpec',

    # Results
    'Row',
    'QueryError',
    'CompileError',
    'UnknownTableError',
    'QueryResponse',

    # Parser
    'parse_projection',
    'parse_or',

    # Executors
    'Executor',
    'PredicateEvaluator',
    'compare_values',
    'sort_rows',
    'MemoryStore',
    'MemoryExecutor',
    'Statement',
    'SqlCompiler',
    'SqlExecutor',

    # Builder
    'QueryBuilder',
]
