"""Tests for the command-line entry point."""

from unittest.mock import patch

import pytest

from chatkeeper.main import build_parser, main
from chatkeeper.membership.reconciler import ChannelRef
from chatkeeper.storage.store import MessageStore


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("CHATKEEPER_DATABASE_URL", url)
    return url


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.verbose is False
        assert args.command is None

    def test_listen(self):
        args = build_parser().parse_args(["-v", "listen", "#demo"])
        assert args.verbose is True
        assert args.command == "listen"
        assert args.channel == "#demo"


class TestListenCommands:
    def test_listen_and_unlisten(self, db_url):
        assert main(["listen", "#Demo"]) == 0
        assert main(["listen", "other"]) == 0
        store = MessageStore.from_url(db_url)
        assert store.active_channels() == [ChannelRef("demo"), ChannelRef("other")]

        assert main(["unlisten", "demo"]) == 0
        assert store.active_channels() == [ChannelRef("other")]


class TestRun:
    def test_invalid_config_exits_nonzero(self, db_url, monkeypatch):
        monkeypatch.setenv("CHATKEEPER_RECONCILE_SCHEDULE", "whenever")
        assert main([]) == 1

    def test_missing_config_file_exits_nonzero(self, db_url, tmp_path):
        assert main(["--config", str(tmp_path / "missing.json")]) == 1

    def test_unsupported_database_exits_nonzero(self, db_url, monkeypatch):
        monkeypatch.setenv("CHATKEEPER_DATABASE_URL", "mysql://localhost/db")
        assert main([]) == 1

    def test_runs_bot(self, db_url):
        with patch("chatkeeper.main.ChatkeeperBot") as bot_cls, \
                patch("chatkeeper.main.signal.signal"):
            assert main([]) == 0
        bot_cls.return_value.run.assert_called_once_with()
