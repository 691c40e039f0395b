"""Tests for the zkteco-ctl CLI."""
from __future__ import annotations

from typer.testing import CliRunner

from zkteco_sync.main import app

runner = CliRunner()


def test_status():
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "Machines Config" in result.output


def test_user_list(pool):
    result = runner.invoke(app, ["user", "list"])
    assert result.exit_code == 0
    assert "Alice" in result.output


def test_user_export(pool, tmp_path):
    out = tmp_path / "users.csv"
    result = runner.invoke(app, ["user", "export", "--output", str(out)])
    assert result.exit_code == 0
    assert out.read_text().startswith("UID,User ID,Name")


def test_attendance_list_with_range(pool):
    result = runner.invoke(app, ["attendance", "list", "--from", "2024-03-02"])
    assert result.exit_code == 0
    assert "OT-In" in result.output
    assert "Check-Out" not in result.output


def test_attendance_export_json(pool, tmp_path):
    out = tmp_path / "att.json"
    result = runner.invoke(app, ["attendance", "export", "--json", "--output", str(out)])
    assert result.exit_code == 0
    assert out.read_text().lstrip().startswith("[")


def test_device_ping_unreachable(pool, terminal):
    terminal.fail_send = True
    result = runner.invoke(app, ["device", "ping"])
    assert result.exit_code == 1


def test_extract(pool, tmp_path):
    result = runner.invoke(app, ["extract", "--export-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert len(list(tmp_path.iterdir())) == 5


def test_sync_users_only(pool):
    result = runner.invoke(app, ["sync", "--users-only"])
    assert result.exit_code == 0
    assert "users" in result.output


def test_sync_conflicting_flags(pool):
    result = runner.invoke(app, ["sync", "--users-only", "--attendance-only"])
    assert result.exit_code != 0


def test_repeated_password_option(pool, terminal):
    terminal.password = 2468
    result = runner.invoke(app, ["--password", "1", "--password", "2468", "user", "list"])
    assert result.exit_code == 0
    assert "Alice" in result.output
