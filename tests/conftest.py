"""Shared pytest fixtures for quote-bot tests."""

import random
from unittest.mock import MagicMock

import pytest

from quote_bot.handlers import Handlers
from quote_bot.models import SessionStore
from quote_bot.pool import WorkerPool
from quote_bot.quotes import Quote, QuoteSource
from quote_bot.telegram import Chat, Message, TelegramClient, Update


@pytest.fixture
def db_path(tmp_path):
    """Path for a throwaway session store."""
    return tmp_path / "test_quote_bot.db"


@pytest.fixture
def store(db_path):
    """An open session store, closed after the test."""
    with SessionStore(db_path) as store:
        yield store


@pytest.fixture
def telegram():
    """Chat transport double; records every message sent."""
    return MagicMock(spec=TelegramClient)


@pytest.fixture
def quotes():
    """Quote archive double with two random quotes and one search hit."""
    source = MagicMock(spec=QuoteSource)
    source.get_quotes.return_value = [
        Quote(quote_id="101", rating="500", text="first random"),
        Quote(quote_id="102", rating="42", text="second random"),
    ]
    source.search.return_value = [Quote(quote_id="201", rating="7", text="found it")]
    source.get_quote.side_effect = lambda quote_id: Quote(
        quote_id=quote_id, rating="1", text=f"saved {quote_id}"
    )
    source.vote.return_value = True
    return source


@pytest.fixture
def handlers(telegram, quotes, store):
    """Handlers over the doubles with a seeded random source."""
    return Handlers(telegram, quotes, store, rng=random.Random(0))


@pytest.fixture
def pool():
    """A running two-worker pool, stopped after the test."""
    with WorkerPool(2, name="test") as pool:
        yield pool


@pytest.fixture
def make_update():
    """Factory for text message updates in a private chat."""

    def _make(text: str, chat_id: int = 1, update_id: int = 1) -> Update:
        return Update(
            update_id=update_id,
            message=Message(
                message_id=update_id,
                chat=Chat(id=chat_id, type="private"),
                text=text,
            ),
        )

    return _make
