"""
Button labels, reply texts and reply keyboards for quote-bot.
"""

from enum import Enum

from .telegram import ReplyKeyboardMarkup


class Button(str, Enum):
    """Texts a user sends by pressing a keyboard button."""

    START = "/start"
    RANDOM = "Случайную"
    SEARCH = "Поиск"
    SAVED = "Сохранненые"
    PLUS = "➕"
    MINUS = "➖"
    BAYAN = "[ : ||| : ]"
    OTHER = "Еще одну"
    BACK = "Назад"
    DELETE = "Удалить"


class Reply(str, Enum):
    """Fixed texts the bot sends."""

    WE_HAVE_AN_ERROR = "У нас ошибочка:("
    NOTHING_TO_SEND = "Пусто :("
    BAD_THING = "Что-то не то..."
    SEARCH_REQUEST = "Ищи!"
    WHAT_SEND = "Что отправить?"


def parse_button(text: str) -> Button | None:
    """Map message text to a button, or None for free text."""
    try:
        return Button(text.strip())
    except ValueError:
        return None


def main_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup.from_rows(
        [
            [Button.RANDOM.value],
            [Button.SEARCH.value],
            [Button.SAVED.value],
        ]
    )


def quote_keyboard() -> ReplyKeyboardMarkup:
    """Keyboard shown under random quotes and search results."""
    return ReplyKeyboardMarkup.from_rows(
        [
            [Button.OTHER.value],
            [Button.PLUS.value, Button.MINUS.value, Button.BAYAN.value],
            [Button.BACK.value],
        ]
    )


def saved_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup.from_rows(
        [
            [Button.OTHER.value],
            [Button.DELETE.value],
            [Button.BACK.value],
        ]
    )
