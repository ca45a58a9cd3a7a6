"""
Entry point of the query layer.

A Client pairs the fluent builder with one executor. Route handlers only
ever see ``client.from_(table)`` and the ``QueryResponse`` it resolves to,
whichever backend sits underneath.

    client = sql_client(Database("iestagram.db"))   # production
    client = memory_client()                        # tests

    response = await client.from_('users').select('id').eq('username', 'alice').single()
"""
import logging
from typing import Optional

from iestagram.config import IestagramConfig, get_config
from iestagram.query import Executor, MemoryExecutor, MemoryStore, QueryBuilder, SqlExecutor

logger = logging.getLogger(__name__)


class Client:
    """Hands out query builders bound to a single executor."""

    def __init__(self, executor: Executor):
        self.executor = executor

    def from_(self, table: str) -> QueryBuilder:
        """Start a new query against ``table``."""
        return QueryBuilder(table, self.executor)

    def table(self, table: str) -> QueryBuilder:
        """Alias of ``from_``."""
        return self.from_(table)

    @property
    def store(self) -> Optional[MemoryStore]:
        """The backing store of an in-memory client, else None."""
        if isinstance(self.executor, MemoryExecutor):
            return self.executor.store
        return None

    def __repr__(self):
        return f"Client(executor={self.executor!r})"


def memory_client(store: Optional[MemoryStore] = None) -> Client:
    """Client over an in-memory store (a fresh one unless given)."""
    return Client(MemoryExecutor(store))


def sql_client(db=None) -> Client:
    """Client compiling to SQL against ``db`` (the configured database by default)."""
    if db is None:
        from iestagram.db import get_db
        db = get_db()
    return Client(SqlExecutor(db))


def create_client(config: Optional[IestagramConfig] = None) -> Client:
    """Client for the backend named in the configuration."""
    config = config or get_config()
    if config.use_memory():
        logger.info("Using in-memory query backend")
        return memory_client()

    from iestagram.db import Database
    db = Database(url=config.get_database_url(), config=config)
    logger.info(f"Using SQL query backend at {db.url}")
    return sql_client(db)
