"""
Tests for the iestagram command-line interface.

Each test drives ``main()`` with a patched ``sys.argv`` against a
temporary SQLite database and inspects the captured output.
"""
import argparse
import json
import sys

import pytest

from iestagram import cli


@pytest.fixture
def invoke(clean_env, reset_global_config, monkeypatch, capsys):
    """
    Run the CLI and return (exit_code, stdout).

    Usage:
        code, out = invoke("query", "users", "--count")
    """
    db_path = str(clean_env / "cli.db")

    def _invoke(*argv):
        monkeypatch.setattr(sys, "argv", ["iestagram", "--db", db_path, *argv])
        code = 0
        try:
            cli.main()
        except SystemExit as e:
            code = e.code
        return code, capsys.readouterr().out
    return _invoke


class TestParsers:
    """Tests for argument type helpers."""

    def test_parse_assignment(self):
        assert cli.parse_assignment("email=a=b@c.d") == ("email", "a=b@c.d")

    def test_parse_assignment_requires_equals(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_assignment("email")

    def test_parse_json_payload(self):
        assert cli.parse_json_payload('[{"a": 1}]') == [{"a": 1}]

    def test_parse_json_payload_rejects_scalars(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_json_payload("42")


class TestQueryCommand:
    """Tests for `iestagram query`."""

    def test_explain_prints_sql(self, invoke):
        code, out = invoke("query", "users", "--select", "id, username", "--eq", "username=alice", "--explain")
        assert code == 0
        assert "SELECT id, username FROM users WHERE username = $1" in out

    def test_explain_join(self, invoke):
        code, out = invoke(
            "query", "posts", "--select", "*, users:user_id(username)",
            "--order", "created_at:desc", "--limit", "10", "--explain",
        )
        assert code == 0
        assert "LEFT JOIN users ON posts.user_id = users.id" in out
        assert "DESC NULLS LAST" in out

    def test_insert_then_query(self, invoke):
        code, _ = invoke("-o", "json", "insert", "users", '{"id": "u1", "username": "alice"}')
        assert code == 0

        code, out = invoke("-o", "json", "query", "users", "--select", "id, username",
                           "--ilike", "username=%ALI%", "--single")
        assert code == 0
        assert json.loads(out) == {"data": {"id": "u1", "username": "alice"}, "error": None}

    def test_count(self, invoke):
        invoke("insert", "users", '[{"username": "a"}, {"username": "b"}]')

        code, out = invoke("-o", "json", "query", "users", "--count")
        assert code == 0
        assert json.loads(out)["count"] == 2

    def test_unknown_table_fails(self, invoke):
        code, out = invoke("query", "nope")
        assert code == 1
        assert "Error" in out


class TestMutationCommands:
    """Tests for update and delete guards."""

    def test_update_requires_filter(self, invoke):
        code, out = invoke("update", "users", '{"avatar_url": "x"}')
        assert code == 1
        assert "--all" in out

    def test_delete_requires_filter(self, invoke):
        code, out = invoke("delete", "users")
        assert code == 1
        assert "--all" in out

    def test_update_with_filter(self, invoke):
        invoke("insert", "users", '{"id": "u1", "username": "alice"}')

        code, out = invoke("-o", "json", "update", "users", '{"avatar_url": "x"}', "--eq", "id=u1")
        assert code == 0
        assert json.loads(out)["data"][0]["avatar_url"] == "x"

    def test_delete_with_in(self, invoke):
        invoke("insert", "users", '[{"id": "u1"}, {"id": "u2"}, {"id": "u3"}]')

        code, out = invoke("-o", "json", "delete", "users", "--in", "id=u1,u3")
        assert code == 0
        assert sorted(r["id"] for r in json.loads(out)["data"]) == ["u1", "u3"]


class TestDbCommand:
    """Tests for `iestagram db`."""

    def test_init_and_info(self, invoke):
        code, out = invoke("db", "init")
        assert code == 0
        assert "Schema ready" in out

        code, out = invoke("db", "info")
        assert code == 0
        assert "users" in out
