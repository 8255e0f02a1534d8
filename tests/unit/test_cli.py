"""Tests for the thinkvoice CLI."""

import sqlite3

import pytest
from typer.testing import CliRunner

from thinkvoice_console.auth.tokens import verify_token
from thinkvoice_console.cli import app

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    db_path = tmp_path / "console.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("JWT_SECRET", "cli-test-secret")
    from thinkvoice_console.common.config import get_settings
    get_settings.cache_clear()
    from thinkvoice_console.deps import reset_singletons
    reset_singletons()
    yield db_path
    get_settings.cache_clear()
    reset_singletons()


class TestIssueToken:
    def test_user_token(self, cli_env):
        result = runner.invoke(app, ["issue-token", "5", "--tenant-id", "2", "--role", "admin"])
        assert result.exit_code == 0
        identity = verify_token(result.output.strip(), secret="cli-test-secret")
        assert identity.subject_id == 5
        assert identity.tenant_id == 2

    def test_user_token_needs_tenant(self, cli_env):
        result = runner.invoke(app, ["issue-token", "5"])
        assert result.exit_code == 1


class TestMigrate:
    def test_legacy_database(self, cli_env):
        conn = sqlite3.connect(cli_env)
        conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT)")
        conn.execute("INSERT INTO users (name, email) VALUES ('Ann', 'ann@x.test')")
        conn.commit()
        conn.close()

        result = runner.invoke(app, ["migrate"])
        assert result.exit_code == 0, result.output
        assert "Migration completed" in result.output

        conn = sqlite3.connect(cli_env)
        assert conn.execute("SELECT tenant_id, role FROM users").fetchall() == [(1, "admin")]
        conn.close()

    def test_failure_exit_code(self, cli_env):
        result = runner.invoke(app, ["migrate", "--no-resume"])
        assert result.exit_code == 1
        assert "backup_users" in result.output


class TestCreateSuperAdmin:
    def test_create_then_update(self, cli_env):
        first = runner.invoke(
            app, ["create-super-admin", "root@x.test", "--password", "pw-one"]
        )
        assert first.exit_code == 0, first.output
        assert "Created" in first.output
        second = runner.invoke(
            app, ["create-super-admin", "root@x.test", "--password", "pw-two"]
        )
        assert "Updated" in second.output
