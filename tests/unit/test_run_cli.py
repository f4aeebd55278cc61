"""Tests for the CLI runner and process lifecycle."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from quote_bot.config import BotConfig
from quote_bot.models import SessionState, SessionStore
from quote_bot.run import main, run_bot
from quote_bot.telegram import TelegramAPIError


@pytest.fixture
def config(db_path):
    config = BotConfig()
    config.store.db_path = db_path
    return config


class TestMain:
    """Tests for the entry point."""

    def test_missing_token(self, tmp_path, monkeypatch):
        """No token in config or environment exits non-zero."""
        monkeypatch.delenv("QUOTE_BOT_TOKEN", raising=False)
        monkeypatch.setattr(
            sys,
            "argv",
            ["quote-bot", "--config", str(tmp_path / "missing.yaml"), "--db", str(tmp_path / "bot.db")],
        )

        assert main() == 1

    def test_token_from_env_reaches_run_bot(self, tmp_path, monkeypatch):
        monkeypatch.setenv("QUOTE_BOT_TOKEN", "env:TOKEN")
        monkeypatch.setattr(
            sys,
            "argv",
            ["quote-bot", "--config", str(tmp_path / "missing.yaml"), "--db", str(tmp_path / "bot.db"), "--polling"],
        )

        with patch("quote_bot.run.run_bot", return_value=0) as mock_run:
            assert main() == 0

        config, token = mock_run.call_args.args
        assert token == "env:TOKEN"
        assert config.store.db_path == tmp_path / "bot.db"
        assert mock_run.call_args.kwargs == {"polling": True}


class TestRunBot:
    """Tests for startup and shutdown."""

    def test_invalid_pool_size(self, config):
        config.pool_size = 0

        with patch("quote_bot.run.TelegramClient") as mock_telegram:
            assert run_bot(config, "t") == 1

        mock_telegram.assert_not_called()

    def test_get_me_failure(self, config):
        with patch("quote_bot.run.TelegramClient") as mock_telegram:
            mock_telegram.return_value.get_me.side_effect = TelegramAPIError("Unauthorized", 401)

            assert run_bot(config, "t") == 1

    def test_polling_mode(self, config):
        with (
            patch("quote_bot.run.TelegramClient") as mock_telegram,
            patch("quote_bot.run.UpdatePoller") as mock_poller,
        ):
            assert run_bot(config, "t", polling=True) == 0

        telegram = mock_telegram.return_value
        telegram.get_me.assert_called_once()
        telegram.delete_webhook.assert_called_once()
        mock_poller.return_value.run.assert_called_once()
        mock_poller.return_value.stop.assert_called_once()

    def test_volatile_state_cleared_saved_quotes_kept(self, config, db_path):
        with SessionStore(db_path) as store:
            store.set_state(1, SessionState.SHOWING_RANDOM)
            store.set_last_quote(1, "101")
            store.save_quote(1, "101")

        with (
            patch("quote_bot.run.TelegramClient"),
            patch("quote_bot.run.UpdatePoller"),
        ):
            run_bot(config, "t", polling=True)

        with SessionStore(db_path) as store:
            assert store.get_state(1) is None
            assert store.get_last_quote(1) is None
            assert store.get_saved_quotes(1) == ["101"]

    def test_webhook_mode(self, config):
        config.webhook.host = "https://bot.example.org"
        config.webhook.cert = Path("cert.pem")
        config.webhook.pkey = Path("key.pem")

        with (
            patch("quote_bot.run.TelegramClient") as mock_telegram,
            patch("quote_bot.run.uvicorn") as mock_uvicorn,
        ):
            mock_telegram.return_value.token = "t"

            assert run_bot(config, "t") == 0

        mock_telegram.return_value.set_webhook.assert_called_once_with(
            "https://bot.example.org:8443/t",
            certificate=Path("cert.pem"),
            max_connections=4,
        )
        kwargs = mock_uvicorn.run.call_args.kwargs
        assert kwargs["port"] == 8443
        assert kwargs["ssl_certfile"] == "cert.pem"
        assert kwargs["ssl_keyfile"] == "key.pem"
