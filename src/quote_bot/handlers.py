"""
Conversation handlers for quote-bot.

One handler per session state. Each reads the incoming message, talks to
the quote archive and the chat transport, and records the chat's next
state in the session store. Quote source and store failures are not caught
here; the router resets the chat and reports them.
"""

import logging
import random
import sqlite3

from .menu import Button, Reply, main_keyboard, parse_button, quote_keyboard, saved_keyboard
from .models import SessionState, SessionStore
from .quotes import QuoteSource, Vote
from .telegram import Message, NoMessageError, TelegramClient, Update

logger = logging.getLogger(__name__)

RANDOM_TOPIC = "random"

VOTE_BUTTONS = {
    Button.PLUS: Vote.RULEZ,
    Button.MINUS: Vote.SUX,
    Button.BAYAN: Vote.BAYAN,
}


def require_message(update: Update) -> Message:
    """Return the update's message or raise NoMessageError."""
    if update.message is None:
        raise NoMessageError(f"update {update.update_id} has no message")
    return update.message


class Handlers:
    """Conversation steps of the bot, bound to its collaborators."""

    def __init__(
        self,
        telegram: TelegramClient,
        quotes: QuoteSource,
        store: SessionStore,
        rng: random.Random | None = None,
    ):
        self.telegram = telegram
        self.quotes = quotes
        self.store = store
        self.rng = rng or random.Random()

    # -------------------------------------------------------------------------
    # Main menu
    # -------------------------------------------------------------------------

    def start(self, chat_id: int, greeting: Reply) -> None:
        """Reset this chat to the main menu and greet it."""
        self.store.reset_chat(chat_id)
        self.store.set_state(chat_id, SessionState.DEFAULT)
        self.telegram.send_text_with_keyboard(chat_id, greeting.value, main_keyboard())

    def menu(self, update: Update) -> None:
        message = require_message(update)
        chat_id = message.chat.id
        button = parse_button(message.text)

        if button is Button.START:
            self.start(chat_id, Reply.WHAT_SEND)
        elif button is Button.RANDOM:
            self.send_random(chat_id)
        elif button is Button.SEARCH:
            self.ask_search(chat_id)
        elif button is Button.SAVED:
            self.send_saved(chat_id)
        else:
            self.start(chat_id, Reply.BAD_THING)

    def _vote(self, quote_id: str, button: Button) -> None:
        if not quote_id:
            logger.warning(f"No quote to vote {button.value} for")
            return
        self.quotes.vote(quote_id, VOTE_BUTTONS[button])

    # -------------------------------------------------------------------------
    # Random quotes
    # -------------------------------------------------------------------------

    def send_random(self, chat_id: int) -> None:
        quotes = self.quotes.get_quotes(RANDOM_TOPIC)
        if not quotes:
            logger.info(f"Random page empty for chat {chat_id}")
            self.start(chat_id, Reply.NOTHING_TO_SEND)
            return

        quote = self.rng.choice(quotes)
        self.telegram.send_text_with_keyboard(chat_id, quote.format(), quote_keyboard())
        self.store.set_state(chat_id, SessionState.SHOWING_RANDOM)
        self.store.set_last_quote(chat_id, quote.quote_id)

    def on_random(self, update: Update) -> None:
        message = require_message(update)
        chat_id = message.chat.id
        button = parse_button(message.text)

        last_quote = self.store.get_last_quote(chat_id)
        if last_quote is None:
            logger.warning(f"Chat {chat_id} is showing a random quote but none is recorded")
            self.start(chat_id, Reply.WE_HAVE_AN_ERROR)
            return

        if button is Button.OTHER:
            self.send_random(chat_id)
        elif button is Button.PLUS:
            try:
                self.store.save_quote(chat_id, last_quote)
            except sqlite3.Error as e:
                logger.error(f"Could not save quote {last_quote} for chat {chat_id}: {e}")
            self._vote(last_quote, button)
            self.send_random(chat_id)
        elif button in VOTE_BUTTONS:
            self._vote(last_quote, button)
            self.send_random(chat_id)
        elif button is Button.BACK:
            self.start(chat_id, Reply.WHAT_SEND)
        else:
            self.start(chat_id, Reply.BAD_THING)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def ask_search(self, chat_id: int) -> None:
        self.store.set_state(chat_id, SessionState.AWAITING_SEARCH_TERM)
        self.telegram.send_text_without_keyboard(chat_id, Reply.SEARCH_REQUEST.value)

    def on_search_term(self, update: Update) -> None:
        """Take the message text as a search query and show the first hit."""
        message = require_message(update)
        chat_id = message.chat.id
        query = message.text.strip()

        if not query:
            self.start(chat_id, Reply.BAD_THING)
            return

        self.store.set_search(chat_id, query, 0)
        self.store.set_state(chat_id, SessionState.SHOWING_SEARCH_RESULT)
        self.send_found(chat_id, query, 0)

    def send_found(self, chat_id: int, query: str, index: int) -> None:
        """
        Send search result ``index`` for ``query``.

        The archive is searched again on every call. When the results run
        out the chat goes back to the main menu.
        """
        quotes = self.quotes.search(query)
        if len(quotes) <= index:
            logger.info(f"Search {query!r} has no result #{index} for chat {chat_id}")
            self.start(chat_id, Reply.NOTHING_TO_SEND)
            return

        quote = quotes[index]
        self.telegram.send_text_with_keyboard(chat_id, quote.format(), quote_keyboard())
        self.store.set_search(chat_id, query, index + 1, quote.quote_id)

    def on_search_result(self, update: Update) -> None:
        message = require_message(update)
        chat_id = message.chat.id
        button = parse_button(message.text)

        search = self.store.get_search(chat_id)
        if search is None:
            logger.warning(f"Chat {chat_id} is browsing search results but no search is recorded")
            self.start(chat_id, Reply.WE_HAVE_AN_ERROR)
            return

        if button is Button.OTHER:
            self.send_found(chat_id, search.query, search.position)
        elif button in VOTE_BUTTONS:
            self._vote(search.quote_id, button)
            self.send_found(chat_id, search.query, search.position)
        elif button is Button.BACK:
            self.start(chat_id, Reply.WHAT_SEND)
        else:
            self.start(chat_id, Reply.BAD_THING)

    # -------------------------------------------------------------------------
    # Saved quotes
    # -------------------------------------------------------------------------

    def send_saved(self, chat_id: int) -> None:
        saved = self.store.get_saved_quotes(chat_id)
        if not saved:
            self.start(chat_id, Reply.NOTHING_TO_SEND)
            return

        quote = self.quotes.get_quote(self.rng.choice(saved))
        self.telegram.send_text_with_keyboard(chat_id, quote.format(), saved_keyboard())
        self.store.set_last_quote(chat_id, quote.quote_id)
        self.store.set_state(chat_id, SessionState.SHOWING_SAVED)

    def on_saved(self, update: Update) -> None:
        message = require_message(update)
        chat_id = message.chat.id
        button = parse_button(message.text)

        last_quote = self.store.get_last_quote(chat_id)
        if last_quote is None:
            logger.warning(f"Chat {chat_id} is showing a saved quote but none is recorded")
            self.start(chat_id, Reply.WE_HAVE_AN_ERROR)
            return

        if button is Button.OTHER:
            self.send_saved(chat_id)
        elif button is Button.DELETE:
            self.store.delete_saved_quote(chat_id, last_quote)
            logger.info(f"Chat {chat_id} removed saved quote {last_quote}")
            self.send_saved(chat_id)
        elif button is Button.BACK:
            self.start(chat_id, Reply.WHAT_SEND)
        else:
            self.start(chat_id, Reply.BAD_THING)
