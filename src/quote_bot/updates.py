"""
Update intake for quote-bot: long polling and the webhook endpoint.

Both hand every update to ``SessionRouter.dispatch``. The pool bounds how
many updates run at once; the router's admission timeout bounds how long an
update waits for a worker.
"""

import logging
import threading

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .router import SessionRouter
from .telegram import TelegramAPIError, TelegramClient, Update

logger = logging.getLogger(__name__)


class UpdatePoller:
    """Long-polls getUpdates and dispatches each update on its own thread."""

    def __init__(
        self,
        telegram: TelegramClient,
        router: SessionRouter,
        poll_timeout: int = 30,
        poll_interval: float = 1.0,
    ):
        self.telegram = telegram
        self.router = router
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval
        self.offset: int | None = None
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def poll_once(self) -> list[threading.Thread]:
        """
        Fetch one batch of updates and start dispatching them.

        Returns the dispatch threads. Each fetched update is confirmed on the
        next call by advancing the offset past it.
        """
        updates = self.telegram.get_updates(offset=self.offset, timeout=self.poll_timeout)

        threads = []
        for update in updates:
            self.offset = update.update_id + 1
            thread = threading.Thread(
                target=self.router.dispatch,
                args=(update,),
                name=f"dispatch-{update.update_id}",
                daemon=True,
            )
            thread.start()
            threads.append(thread)

        if threads:
            logger.debug(f"Dispatched {len(threads)} update(s), next offset {self.offset}")
        return threads

    def run(self) -> None:
        """Poll until stop() is called. API errors are logged and retried."""
        logger.info("Polling for updates")
        while not self._stopped.is_set():
            try:
                self.poll_once()
            except TelegramAPIError as e:
                logger.error(f"Polling failed: {e}")
                self._stopped.wait(self.poll_interval)
        logger.info("Polling stopped")

    def stop(self) -> None:
        self._stopped.set()


def create_webhook_app(router: SessionRouter, token: str) -> Starlette:
    """
    Build the ASGI app Telegram posts updates to.

    The route path is the bot token. Handler errors never reach Telegram:
    every well-formed update is answered with 200.
    """

    async def receive_update(request: Request) -> JSONResponse:
        try:
            update = Update.from_dict(await request.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Rejected malformed webhook payload: {e!r}")
            return JSONResponse({"ok": False, "error": "malformed update"}, status_code=400)

        outcome = await run_in_threadpool(router.dispatch, update)
        return JSONResponse({"ok": True, "handled": outcome.ok})

    routes = [
        Route(f"/{token}", endpoint=receive_update, methods=["POST"]),
    ]
    return Starlette(routes=routes)
