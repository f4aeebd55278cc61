"""
Telegram Bot API client for quote-bot.

Only the small part of the API the bot uses: identity, updates, text
messages with reply keyboards and webhook registration.

API Documentation: https://core.telegram.org/bots/api
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"


class TelegramAPIError(Exception):
    """A Bot API call failed or returned ``ok: false``."""

    def __init__(self, message: str, error_code: int | None = None):
        super().__init__(message)
        self.error_code = error_code


class TelegramForbiddenError(TelegramAPIError):
    """The bot is not allowed to act in this chat (HTTP 403)."""


class NoMessageError(ValueError):
    """The update carries no message to react to."""


@dataclass
class User:
    """A Telegram user or bot."""

    id: int
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    language_code: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            username=data.get("username", ""),
            language_code=data.get("language_code", ""),
        )


@dataclass
class Chat:
    """A private chat, group or channel."""

    id: int
    type: str = ""
    title: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chat":
        return cls(
            id=data["id"],
            type=data.get("type", ""),
            title=data.get("title", ""),
            username=data.get("username", ""),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
        )


@dataclass
class Message:
    """An incoming or sent message. ``text`` is empty for non-text messages."""

    message_id: int
    chat: Chat
    date: int = 0
    from_user: User | None = None
    text: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        from_data = data.get("from")
        return cls(
            message_id=data["message_id"],
            chat=Chat.from_dict(data["chat"]),
            date=data.get("date", 0),
            from_user=User.from_dict(from_data) if from_data else None,
            text=data.get("text", ""),
        )


@dataclass
class Update:
    """An incoming update. Only message updates are handled."""

    update_id: int
    message: Message | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Update":
        message_data = data.get("message")
        return cls(
            update_id=data["update_id"],
            message=Message.from_dict(message_data) if message_data else None,
        )


@dataclass
class KeyboardButton:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass
class ReplyKeyboardMarkup:
    """A custom reply keyboard shown under the message input."""

    keyboard: list[list[KeyboardButton]] = field(default_factory=list)
    resize_keyboard: bool = True
    one_time_keyboard: bool = False
    selective: bool = True

    @classmethod
    def from_rows(cls, rows: list[list[str]]) -> "ReplyKeyboardMarkup":
        """Build a keyboard from rows of button labels."""
        return cls(keyboard=[[KeyboardButton(text) for text in row] for row in rows])

    def labels(self) -> list[list[str]]:
        return [[button.text for button in row] for row in self.keyboard]

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyboard": [[button.to_dict() for button in row] for row in self.keyboard],
            "resize_keyboard": self.resize_keyboard,
            "one_time_keyboard": self.one_time_keyboard,
            "selective": self.selective,
        }


@dataclass
class ReplyKeyboardRemove:
    """Asks the client to hide the current reply keyboard."""

    remove_keyboard: bool = True
    selective: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"remove_keyboard": self.remove_keyboard, "selective": self.selective}


class TelegramClient:
    """Client for the Telegram Bot API."""

    def __init__(
        self,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize the client.

        Args:
            token: Bot token from @BotFather
            api_base: API root, overridable for a local Bot API server
            timeout_seconds: Request timeout in seconds (long polls add their own wait)
        """
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout_seconds

    def _endpoint(self, method: str) -> str:
        return f"{self.api_base}/bot{self.token}/{method}"

    def make_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Call an API method and return its ``result``.

        The endpoint URL embeds the token, so it is never logged.
        """
        logger.debug(f"Bot API call {method}")
        with httpx.Client(timeout=timeout or self.timeout) as client:
            try:
                response = client.post(self._endpoint(method), data=params or {}, files=files)
            except httpx.RequestError as e:
                raise TelegramAPIError(f"{method}: request failed: {e}") from e

        if response.status_code == 403:
            raise TelegramForbiddenError(f"{method}: forbidden", error_code=403)

        try:
            payload = response.json()
        except ValueError as e:
            raise TelegramAPIError(
                f"{method}: invalid response (HTTP {response.status_code})",
                error_code=response.status_code,
            ) from e

        if not isinstance(payload, dict):
            raise TelegramAPIError(
                f"{method}: invalid response (HTTP {response.status_code})",
                error_code=response.status_code,
            )

        if response.status_code != 200 or not payload.get("ok"):
            description = payload.get("description") or "not ok"
            raise TelegramAPIError(
                f"{method}: {description}",
                error_code=payload.get("error_code", response.status_code),
            )

        return payload.get("result")

    def get_me(self) -> User:
        """Get the bot's own identity."""
        return User.from_dict(self.make_request("getMe"))

    def get_updates(self, offset: int | None = None, timeout: int = 0) -> list[Update]:
        """
        Fetch pending updates.

        Args:
            offset: First update ID to return; earlier updates are confirmed
            timeout: Long-poll wait in seconds (0 returns at once)
        """
        params: dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            params["offset"] = offset

        result = self.make_request("getUpdates", params, timeout=self.timeout + timeout)
        if not isinstance(result, list):
            raise TelegramAPIError("getUpdates: result is not a list")

        try:
            return [Update.from_dict(item) for item in result]
        except (KeyError, TypeError) as e:
            raise TelegramAPIError(f"getUpdates: malformed update: {e}") from e

    def _send_message(self, chat_id: int, text: str, reply_markup: dict | None = None) -> Message:
        params: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            params["reply_markup"] = json.dumps(reply_markup, ensure_ascii=False)
        return Message.from_dict(self.make_request("sendMessage", params))

    def send_text(self, chat_id: int, text: str) -> Message:
        """Send plain text, leaving any keyboard as it is."""
        return self._send_message(chat_id, text)

    def send_text_with_keyboard(
        self, chat_id: int, text: str, keyboard: ReplyKeyboardMarkup
    ) -> Message:
        """Send text and show a reply keyboard."""
        return self._send_message(chat_id, text, keyboard.to_dict())

    def send_text_without_keyboard(self, chat_id: int, text: str) -> Message:
        """Send text and hide the reply keyboard."""
        return self._send_message(chat_id, text, ReplyKeyboardRemove().to_dict())

    def set_webhook(
        self,
        url: str,
        certificate: Path | None = None,
        max_connections: int | None = None,
    ) -> bool:
        """
        Register the webhook URL.

        Args:
            url: HTTPS URL Telegram should post updates to
            certificate: Public key certificate to upload for self-signed setups
            max_connections: Maximum simultaneous webhook connections
        """
        params: dict[str, Any] = {"url": url}
        if max_connections is not None:
            params["max_connections"] = max_connections

        if certificate is None:
            return bool(self.make_request("setWebhook", params))

        certificate = Path(certificate)
        with open(certificate, "rb") as f:
            files = {"certificate": (certificate.name, f)}
            return bool(self.make_request("setWebhook", params, files=files))

    def delete_webhook(self) -> bool:
        """Remove the webhook so getUpdates can be used."""
        return bool(self.make_request("deleteWebhook"))
