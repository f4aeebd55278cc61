"""
Configuration for quote-bot.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class WebhookConfig:
    """Webhook endpoint and TLS material."""

    host: str = ""  # public host, e.g. https://bot.example.org
    port: int = 8443
    listen_host: str = "0.0.0.0"
    cert: Path | None = None
    pkey: Path | None = None

    def url_for(self, token: str) -> str:
        """Public URL Telegram posts updates to."""
        host = self.host.rstrip("/")
        if "://" not in host:
            host = f"https://{host}"
        return f"{host}:{self.port}/{token}"


@dataclass
class StoreConfig:
    """Session store location."""

    db_path: Path = field(default_factory=lambda: Path("quote_bot.db"))


@dataclass
class QuotesConfig:
    """Quote archive connection."""

    base_url: str = "http://bash.im"
    timeout_seconds: float = 10.0


@dataclass
class TelegramConfig:
    """Bot API connection and long-polling settings."""

    api_base: str = "https://api.telegram.org"
    timeout_seconds: float = 10.0
    poll_timeout: int = 30
    poll_interval: float = 1.0


@dataclass
class BotConfig:
    """Complete quote-bot configuration."""

    token: str | None = None
    token_env: str | None = "QUOTE_BOT_TOKEN"
    pool_size: int = 4
    timeout_ms: int = 1000  # worker admission timeout
    debug: bool = False

    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    quotes: QuotesConfig = field(default_factory=QuotesConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)

    def get_token(self) -> str | None:
        """Get the bot token from config or environment."""
        if self.token:
            return self.token
        if self.token_env:
            return os.environ.get(self.token_env)
        return None

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def use_polling(self) -> bool:
        """Long polling in debug mode or when no TLS key is configured."""
        return self.debug or self.webhook.pkey is None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BotConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "token" in data:
            config.token = data["token"]
        if "token_env" in data:
            config.token_env = data["token_env"]
        if "pool_size" in data:
            config.pool_size = data["pool_size"]
        if "timeout" in data:
            config.timeout_ms = data["timeout"]
        if "debug" in data:
            config.debug = bool(data["debug"])

        # Webhook keys may sit in their own section or at the top level
        webhook = data.get("webhook") or data
        config.webhook = WebhookConfig(
            host=webhook.get("host", ""),
            port=int(webhook.get("port", 8443)),
            listen_host=webhook.get("listen_host", "0.0.0.0"),
            cert=Path(webhook["cert"]) if webhook.get("cert") else None,
            pkey=Path(webhook["pkey"]) if webhook.get("pkey") else None,
        )

        if "store" in data:
            store = data["store"]
            config.store = StoreConfig(
                db_path=Path(store.get("db_path", config.store.db_path)),
            )

        if "quotes" in data:
            quotes = data["quotes"]
            config.quotes = QuotesConfig(
                base_url=quotes.get("base_url", "http://bash.im"),
                timeout_seconds=quotes.get("timeout_seconds", 10.0),
            )

        if "telegram" in data:
            telegram = data["telegram"]
            config.telegram = TelegramConfig(
                api_base=telegram.get("api_base", "https://api.telegram.org"),
                timeout_seconds=telegram.get("timeout_seconds", 10.0),
                poll_timeout=telegram.get("poll_timeout", 30),
                poll_interval=telegram.get("poll_interval", 1.0),
            )

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "BotConfig":
        """Load config from a YAML file. A missing file gives the defaults."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for logging. The token is left out."""
        return {
            "pool_size": self.pool_size,
            "timeout": self.timeout_ms,
            "debug": self.debug,
            "webhook": {
                "host": self.webhook.host,
                "port": self.webhook.port,
                "listen_host": self.webhook.listen_host,
                "cert": str(self.webhook.cert) if self.webhook.cert else None,
                "pkey": str(self.webhook.pkey) if self.webhook.pkey else None,
            },
            "store": {
                "db_path": str(self.store.db_path),
            },
            "quotes": {
                "base_url": self.quotes.base_url,
                "timeout_seconds": self.quotes.timeout_seconds,
            },
            "telegram": {
                "api_base": self.telegram.api_base,
                "timeout_seconds": self.telegram.timeout_seconds,
                "poll_timeout": self.telegram.poll_timeout,
                "poll_interval": self.telegram.poll_interval,
            },
        }
