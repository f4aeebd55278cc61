"""
Session router for quote-bot.

Maps an incoming update to the handler registered for the chat's current
session state and runs it on the worker pool with a bounded admission wait.
"""

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import assert_never

from .handlers import Handlers, require_message
from .menu import Reply
from .models import SessionState, SessionStore, StoreClosedError
from .pool import PoolStoppedError, PoolTimeoutError, WorkerPool
from .quotes import QuoteSourceError
from .telegram import TelegramAPIError, Update

logger = logging.getLogger(__name__)

Handler = Callable[[Update], None]

# Failures after which the chat is sent back to the main menu.
RECOVERABLE_ERRORS = (QuoteSourceError, sqlite3.Error, StoreClosedError)


class ChatLocks:
    """
    One lock per chat id, so updates for the same chat run one at a time.

    Locks are reference counted and dropped once no update for the chat is
    running or waiting.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}
        self._users: dict[int, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, chat_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(chat_id, threading.Lock())
            self._users[chat_id] = self._users.get(chat_id, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[chat_id] -= 1
                if self._users[chat_id] == 0:
                    del self._users[chat_id]
                    del self._locks[chat_id]


@dataclass
class DispatchOutcome:
    """What happened to one dispatched update."""

    update_id: int
    admitted: bool
    state: SessionState | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.admitted and self.error is None


class SessionRouter:
    """
    Routes updates to handlers by session state.

    Updates for one chat are serialized with a per-chat lock held inside the
    worker. A chat that floods the bot can therefore tie up several workers
    waiting on its own lock.
    """

    def __init__(
        self,
        handlers: Handlers,
        store: SessionStore,
        pool: WorkerPool,
        timeout: float,
    ):
        """
        Initialize the router.

        Args:
            handlers: Conversation handlers
            store: Session store holding each chat's state
            pool: Worker pool the handlers run on
            timeout: Seconds to wait for a free worker before dropping an update
        """
        self.handlers = handlers
        self.store = store
        self.pool = pool
        self.timeout = timeout
        self.locks = ChatLocks()

        for state in SessionState:
            if not callable(self.handler_for(state)):
                raise TypeError(f"no handler for session state {state.value}")

    def resolve(self, chat_id: int) -> SessionState:
        """Get the chat's state, falling back to DEFAULT."""
        try:
            state = self.store.get_state(chat_id)
        except (sqlite3.Error, StoreClosedError, ValueError) as e:
            logger.warning(f"Could not read state for chat {chat_id}, using default: {e}")
            return SessionState.DEFAULT

        if state is None:
            return SessionState.DEFAULT
        return state

    def handler_for(self, state: SessionState) -> Handler:
        if state is SessionState.DEFAULT:
            return self.handlers.menu
        elif state is SessionState.AWAITING_SEARCH_TERM:
            return self.handlers.on_search_term
        elif state is SessionState.SHOWING_RANDOM:
            return self.handlers.on_random
        elif state is SessionState.SHOWING_SEARCH_RESULT:
            return self.handlers.on_search_result
        elif state is SessionState.SHOWING_SAVED:
            return self.handlers.on_saved
        else:
            assert_never(state)

    def process(self, update: Update) -> SessionState:
        """
        Handle one update on the calling thread.

        Returns the state the update was handled in. Quote source and store
        failures reset the chat with an error reply and are re-raised.
        """
        chat_id = require_message(update).chat.id

        with self.locks.hold(chat_id):
            state = self.resolve(chat_id)
            logger.debug(f"Update {update.update_id} for chat {chat_id} in state {state.value}")
            try:
                self.handler_for(state)(update)
            except RECOVERABLE_ERRORS as e:
                logger.error(f"Update {update.update_id} failed in state {state.value}: {e}")
                self._reset_after_error(chat_id)
                raise
        return state

    def _reset_after_error(self, chat_id: int) -> None:
        try:
            self.handlers.start(chat_id, Reply.WE_HAVE_AN_ERROR)
        except (*RECOVERABLE_ERRORS, TelegramAPIError) as e:
            logger.error(f"Could not reset chat {chat_id} after error: {e}")

    def dispatch(self, update: Update) -> DispatchOutcome:
        """
        Run ``process(update)`` on the pool.

        Never raises: admission timeouts, a stopped pool and handler errors
        are logged and reported in the outcome.
        """
        try:
            result = self.pool.submit_timed(lambda: self.process(update), self.timeout)
        except PoolTimeoutError as e:
            logger.warning(f"Update {update.update_id} dropped: {e}")
            return DispatchOutcome(update.update_id, admitted=False, error=e)
        except PoolStoppedError as e:
            logger.warning(f"Update {update.update_id} rejected: {e}")
            return DispatchOutcome(update.update_id, admitted=False, error=e)

        if not result.ok:
            logger.error(f"Update {update.update_id} failed: {result.error!r}")
            return DispatchOutcome(update.update_id, admitted=True, error=result.error)

        return DispatchOutcome(update.update_id, admitted=True, state=result.value)
