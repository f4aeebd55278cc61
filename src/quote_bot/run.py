"""
CLI runner for quote-bot.

Usage:
    python -m quote_bot.run [OPTIONS]

    # Serve the webhook configured in config.yaml
    python -m quote_bot.run

    # Long-poll instead, e.g. while developing
    python -m quote_bot.run --polling --verbose
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from .config import BotConfig
from .handlers import Handlers
from .models import SessionStore
from .pool import InvalidConcurrencyError, WorkerPool
from .quotes import QuoteSource
from .router import SessionRouter
from .telegram import TelegramAPIError, TelegramClient
from .updates import UpdatePoller, create_webhook_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("quote-bot")


def poll(telegram: TelegramClient, router: SessionRouter, config: BotConfig) -> None:
    """Long-poll for updates until interrupted."""
    telegram.delete_webhook()
    poller = UpdatePoller(
        telegram,
        router,
        poll_timeout=config.telegram.poll_timeout,
        poll_interval=config.telegram.poll_interval,
    )
    try:
        poller.run()
    except KeyboardInterrupt:
        logger.info("Polling stopped by user")
    finally:
        poller.stop()


def serve_webhook(telegram: TelegramClient, router: SessionRouter, config: BotConfig) -> None:
    """Register the webhook and serve it over TLS until interrupted."""
    webhook = config.webhook
    telegram.set_webhook(
        webhook.url_for(telegram.token),
        certificate=webhook.cert,
        max_connections=config.pool_size,
    )
    logger.info(f"Webhook set, listening on {webhook.listen_host}:{webhook.port}")

    app = create_webhook_app(router, telegram.token)
    uvicorn.run(
        app,
        host=webhook.listen_host,
        port=webhook.port,
        ssl_certfile=str(webhook.cert) if webhook.cert else None,
        ssl_keyfile=str(webhook.pkey),
        log_level="debug" if config.debug else "info",
    )


def run_bot(config: BotConfig, token: str, polling: bool = False) -> int:
    """
    Run the bot until interrupted.

    Returns the process exit code.
    """
    store = SessionStore(config.store.db_path)
    store.open()
    store.truncate_volatile()
    logger.info(f"Session store: {config.store.db_path}")

    pool = None
    try:
        pool = WorkerPool(config.pool_size, name="updates")
        pool.run()

        telegram = TelegramClient(
            token,
            api_base=config.telegram.api_base,
            timeout_seconds=config.telegram.timeout_seconds,
        )
        me = telegram.get_me()
        logger.info(f"Connected as @{me.username} ({me.id})")

        quotes = QuoteSource(config.quotes.base_url, config.quotes.timeout_seconds)
        handlers = Handlers(telegram, quotes, store)
        router = SessionRouter(handlers, store, pool, config.timeout_seconds)

        if polling or config.use_polling:
            poll(telegram, router, config)
        else:
            serve_webhook(telegram, router, config)

    except InvalidConcurrencyError as e:
        logger.error(f"Invalid pool_size: {e}")
        return 1
    except TelegramAPIError as e:
        logger.error(f"Telegram API error: {e}")
        return 1
    finally:
        if pool is not None:
            pool.stop()
        store.truncate_volatile()
        store.close()

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="quote-bot: Telegram bot relaying quotes from a quote archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Serve the webhook
    python -m quote_bot.run --config config.yaml

    # Long-poll with a scratch database
    python -m quote_bot.run --polling --db /tmp/quote_bot.db
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override session store path from config",
    )
    parser.add_argument(
        "--polling",
        action="store_true",
        help="Long-poll for updates instead of serving a webhook",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Load config
    config = BotConfig.from_yaml(args.config)
    if args.db:
        config.store.db_path = args.db

    logger.info(f"Config loaded from {args.config}")
    logger.debug(f"Config: {config.to_dict()}")
    logger.info(
        f"Pool size: {config.pool_size}, admission timeout: {config.timeout_ms}ms, "
        f"mode: {'polling' if args.polling or config.use_polling else 'webhook'}"
    )

    token = config.get_token()
    if not token:
        logger.error(f"No bot token: set 'token' in {args.config} or ${config.token_env}")
        return 1

    return run_bot(config, token, polling=args.polling)


if __name__ == "__main__":
    sys.exit(main())
