"""
IEstagram - query layer of a small social-media backend

A fluent, awaitable query builder with two interchangeable backends:
compiled, parameterized SQL over SQLAlchemy, and an in-memory store for
hermetic tests.

Design Principles:
- One builder type, backend chosen by the injected executor
- Failures come back in the response, never as exceptions
- Both backends return identical rows for identical queries

Example Usage:
    >>> from iestagram import memory_client
    >>> client = memory_client()
    >>> await client.from_('users').insert({'username': 'alice'})
    >>> response = await client.from_('users').select('id, username').eq('username', 'alice').single()
    >>> response.data['username']
    'alice'
"""

__version__ = "0.1.0"
__author__ = "IEstagram Contributors"

# Configuration
from iestagram.config import IestagramConfig, get_config, init_config

# Query layer
from iestagram.query import (
    QueryBuilder,
    QueryResponse,
    QueryError,
    MemoryStore,
    MemoryExecutor,
    SqlCompiler,
    SqlExecutor,
)

# Entry points
from iestagram.client import Client, create_client, memory_client, sql_client

__all__ = [
    # Configuration
    "IestagramConfig",
    "get_config",
    "init_config",

    # Query layer
    "QueryBuilder",
    "QueryResponse",
    "QueryError",
    "MemoryStore",
    "MemoryExecutor",
    "SqlCompiler",
    "SqlExecutor",

    # Entry points
    "Client",
    "create_client",
    "memory_client",
    "sql_client",
]
