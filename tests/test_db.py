"""
Tests for iestagram/db.py and the schema models.
"""
import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from iestagram.config import IestagramConfig
from iestagram.db import Database


class TestDatabase:
    """Tests for the Database wrapper."""

    def test_creates_schema(self, database):
        assert set(database.table_names()) >= {'users', 'posts', 'follows', 'likes', 'comments'}

    def test_creates_parent_directories(self, tmp_path):
        db = Database(path=str(tmp_path / "nested" / "dir" / "test.db"))
        assert (tmp_path / "nested" / "dir").exists()
        db.engine.dispose()

    def test_given_config_overrides_global(self, tmp_path, reset_global_config):
        config = IestagramConfig(sql_dialect="postgresql", database_echo=True)
        db = Database(path=str(tmp_path / "test.db"), config=config)
        assert db.dialect == "postgresql"
        assert db.engine.echo is True
        db.engine.dispose()

    def test_columns_in_declaration_order(self, database):
        assert database.columns('users') == [
            'id', 'username', 'email', 'password_hash', 'avatar_url', 'created_at', 'updated_at',
        ]

    def test_composite_keys_have_no_id(self, database):
        assert 'id' not in database.columns('follows')
        assert 'id' not in database.columns('likes')

    def test_session_commits(self, database):
        with database.session() as session:
            session.execute(text("INSERT INTO users (id, username) VALUES ('u1', 'alice')"))

        with database.session() as session:
            assert session.execute(text("SELECT COUNT(*) FROM users")).scalar_one() == 1

    def test_session_rolls_back_on_error(self, database):
        with pytest.raises(IntegrityError):
            with database.session() as session:
                session.execute(text("INSERT INTO users (id, username) VALUES ('u1', 'alice')"))
                session.execute(text("INSERT INTO users (id, username) VALUES ('u2', 'alice')"))

        with database.session() as session:
            assert session.execute(text("SELECT COUNT(*) FROM users")).scalar_one() == 0

    def test_self_follow_rejected(self, database):
        with pytest.raises(IntegrityError):
            with database.session() as session:
                session.execute(text("INSERT INTO users (id) VALUES ('u1')"))
                session.execute(text("INSERT INTO follows (follower_id, following_id) VALUES ('u1', 'u1')"))

    def test_post_type_checked(self, database):
        with pytest.raises(IntegrityError):
            with database.session() as session:
                session.execute(text("INSERT INTO posts (id, type) VALUES ('p1', 'audio')"))

    def test_drop_schema(self, database):
        database.drop_schema()
        assert 'users' not in database.table_names()
