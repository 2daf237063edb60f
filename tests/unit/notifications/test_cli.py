"""Tests for fitcoach/cli.py"""

import asyncio
import json

import pytest

from fitcoach import cli
from fitcoach.notifications.config import NotificationsConfig, StorageConfig
from fitcoach.notifications.models import Preferences
from fitcoach.notifications.preferences.store import PreferenceStore


@pytest.fixture
def cli_config(monkeypatch, temp_db):
    """Point the CLI at a temporary database."""
    config = NotificationsConfig(storage=StorageConfig(db_path=str(temp_db)))
    monkeypatch.setattr(cli, "load_config", lambda: config)
    return config


class TestCli:
    def test_no_command_prints_help(self, cli_config, capsys):
        assert cli.main([]) == 0
        assert "fitcoach-notify" in capsys.readouterr().out

    def test_prefs_shows_defaults(self, cli_config, capsys):
        assert cli.main(["prefs", "-u", "alice"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["user_id"] == "alice"
        assert data["enabled"] is True
        assert "meal" in data["enabled_categories"]

    def test_quiet_hours_round_trip(self, cli_config, capsys):
        assert cli.main(["quiet-hours", "-u", "alice", "-s", "22:30", "-e", "06:45"]) == 0
        assert "Quiet hours set" in capsys.readouterr().out

        cli.main(["prefs", "-u", "alice"])
        data = json.loads(capsys.readouterr().out)
        assert data["quiet_hours"] == {"start": "22:30", "end": "06:45"}

    def test_quiet_hours_rejects_degenerate_window(self, cli_config, capsys):
        assert cli.main(["quiet-hours", "-u", "alice", "-s", "08:00", "-e", "08:00"]) == 1
        assert "must differ" in capsys.readouterr().out

    def test_quiet_hours_rejects_bad_time(self, cli_config, capsys):
        assert cli.main(["quiet-hours", "-u", "alice", "-s", "25:00", "-e", "06:00"]) == 1
        assert "Invalid time format" in capsys.readouterr().out

    def test_preview_lists_upcoming_reminders(self, cli_config, capsys):
        assert cli.main(["preview", "-u", "alice", "--hours", "48"]) == 0

        rows = json.loads(capsys.readouterr().out)
        assert rows
        assert all({"sequence_id", "scheduled_at", "category", "title"} <= set(r) for r in rows)
        instants = [r["scheduled_at"] for r in rows]
        assert instants == sorted(instants)

    def test_preview_unknown_timezone(self, cli_config, temp_db, capsys):
        store = PreferenceStore("alice", db_path=temp_db)
        asyncio.run(store.save(Preferences.defaults("alice").with_updates(timezone="Nowhere/Land")))

        assert cli.main(["preview", "-u", "alice"]) == 1
        assert "Error:" in capsys.readouterr().out

    def test_storage_unavailable(self, monkeypatch, broken_db_path, capsys):
        config = NotificationsConfig(storage=StorageConfig(db_path=str(broken_db_path)))
        monkeypatch.setattr(cli, "load_config", lambda: config)

        assert cli.main(["prefs", "-u", "alice"]) == 1
        assert "storage unavailable" in capsys.readouterr().out
