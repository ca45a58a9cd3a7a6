import asyncio
import os
import shutil
import tempfile

import pytest

from iestagram import config as config_module
from iestagram.client import memory_client, sql_client
from iestagram.db import Database
from iestagram.models import Base
from iestagram.query import MemoryStore


@pytest.fixture
def run():
    """
    Force a builder (or any awaitable) from synchronous test code.

    Usage:
        def test_something(run, memory):
            response = run(memory.from_('users').select())
    """
    def _run(awaitable):
        async def _force():
            return await awaitable
        return asyncio.run(_force())
    return _run


@pytest.fixture
def memory_store():
    """A fresh, empty in-memory store."""
    store = MemoryStore()
    yield store
    store.reset()


@pytest.fixture
def memory(memory_store):
    """Client over the in-memory backend."""
    return memory_client(memory_store)


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    temp_dir = tempfile.mkdtemp(prefix="iestagram_test_db_")
    db_path = os.path.join(temp_dir, "test.db")
    yield db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def database(temp_db):
    """A SQLite-backed Database with the schema created."""
    db = Database(path=temp_db)
    yield db
    db.engine.dispose()


@pytest.fixture
def sql(database):
    """Client over the SQL backend."""
    return sql_client(database)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """
    A clean environment that does not see the real config.

    Removes IESTAGRAM_ environment variables and sets HOME to a temp directory.
    """
    for key in list(os.environ.keys()):
        if key.startswith("IESTAGRAM_"):
            monkeypatch.delenv(key, raising=False)

    mock_home = tmp_path / "home"
    mock_home.mkdir()
    monkeypatch.setenv("HOME", str(mock_home))
    monkeypatch.chdir(tmp_path)

    return tmp_path


@pytest.fixture
def reset_global_config():
    """Drop the cached global config before and after a test."""
    config_module._config = None
    yield
    config_module._config = None


# ============ Sample data ============

@pytest.fixture
def users():
    """Full user rows (every column present)."""
    return [
        {
            "id": "u1", "username": "alice", "email": "alice@example.com",
            "password_hash": "x", "avatar_url": None,
            "created_at": "2024-01-01T09:00:00+00:00", "updated_at": None,
        },
        {
            "id": "u2", "username": "bob", "email": "bob@example.com",
            "password_hash": "x", "avatar_url": "https://cdn.test/bob.png",
            "created_at": "2024-01-02T09:00:00+00:00", "updated_at": None,
        },
        {
            "id": "u3", "username": "Bobby", "email": "bobby@example.com",
            "password_hash": "x", "avatar_url": None,
            "created_at": "2024-01-03T09:00:00+00:00", "updated_at": None,
        },
    ]


@pytest.fixture
def posts():
    """Full post rows, one of them with no author and one undated."""
    return [
        {
            "id": "p1", "user_id": "u1", "title": "Hello", "content": "first",
            "image_url": None, "video_url": None, "type": "text",
            "created_at": "2024-02-01T10:00:00+00:00", "updated_at": None,
        },
        {
            "id": "p2", "user_id": "u2", "title": "Sunset", "content": "photo",
            "image_url": "https://cdn.test/p2.jpg", "video_url": None, "type": "photo",
            "created_at": "2024-02-03T10:00:00+00:00", "updated_at": None,
        },
        {
            "id": "p3", "user_id": "u1", "title": "Clip", "content": "video",
            "image_url": None, "video_url": "https://cdn.test/p3.mp4", "type": "video",
            "created_at": "2024-02-02T10:00:00+00:00", "updated_at": None,
        },
        {
            "id": "p4", "user_id": None, "title": "Orphan", "content": "draft",
            "image_url": None, "video_url": None, "type": "text",
            "created_at": None, "updated_at": None,
        },
    ]


@pytest.fixture
def seed():
    """
    Load rows as-is into a client's backend, bypassing insert defaults.

    Usage:
        def test_something(seed, memory, users, posts):
            seed(memory, users=users, posts=posts)
    """
    def _seed(client, **tables):
        for name in ("users", "posts", "follows", "likes", "comments"):
            rows = tables.get(name)
            if not rows:
                continue
            if client.store is not None:
                client.store.seed(name, rows)
            else:
                with client.executor.db.session() as session:
                    session.execute(Base.metadata.tables[name].insert(), rows)
    return _seed
