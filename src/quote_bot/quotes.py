"""
Quote archive client for quote-bot.

Scrapes pages laid out like bash.im: every quote is a ``.quote`` block
holding ``.id``, ``.rating`` and ``.text`` elements.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from bs4 import BeautifulSoup, Comment, Tag

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://bash.im"

# The archive search expects windows-1251 bytes, every one percent-encoded.
SEARCH_ENCODING = "windows-1251"


class QuoteSourceError(Exception):
    """The quote archive could not be reached or returned an error."""


class QuoteNotFoundError(QuoteSourceError):
    """The requested quote page holds no quote."""


class Vote(str, Enum):
    """Votes the archive accepts for a quote."""

    RULEZ = "rulez"
    SUX = "sux"
    BAYAN = "bayan"


@dataclass
class Quote:
    """A single quote from the archive."""

    quote_id: str
    rating: str
    text: str

    def format(self) -> str:
        """Render the quote as a chat message."""
        return f"{self.text}\n\n# {self.quote_id}\n+ {self.rating}\n"

    def to_dict(self) -> dict[str, Any]:
        return {"quote_id": self.quote_id, "rating": self.rating, "text": self.text}


def parse_quotes(html: str) -> list[Quote]:
    """
    Extract quotes from an archive page.

    Blocks missing any of the id, rating or text elements are skipped.
    Line breaks inside the text become newlines.
    """
    soup = BeautifulSoup(html, "html.parser")

    quotes = []
    for block in soup.find_all(class_="quote"):
        id_node = block.find(class_="id")
        rating_node = block.find(class_="rating")
        text_node = block.find(class_="text")
        if id_node is None or rating_node is None or text_node is None:
            continue

        quote_id = id_node.get_text(strip=True).lstrip("#")
        if not quote_id:
            continue

        quotes.append(
            Quote(
                quote_id=quote_id,
                rating=rating_node.get_text(strip=True),
                text=_text_with_breaks(text_node),
            )
        )
    return quotes


def _text_with_breaks(node: Tag) -> str:
    parts = []
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, Tag):
            parts.append("\n" if child.name == "br" else child.get_text())
        else:
            parts.append(str(child))
    return "".join(parts).strip()


def encode_search_query(text: str) -> str:
    """Percent-encode every windows-1251 byte of a search query."""
    data = text.encode(SEARCH_ENCODING, errors="replace")
    return "".join(f"%{byte:02X}" for byte in data)


class QuoteSource:
    """
    Client for the quote archive.

    Provides topic pages (e.g. "random"), lookup by ID, search and voting.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds

    def _fetch(self, url: str) -> str:
        with httpx.Client(timeout=self.timeout) as client:
            try:
                response = client.get(url, follow_redirects=True)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise QuoteSourceError(f"can't get page {url}: {e}") from e
            return response.text

    def get_quotes(self, topic: str) -> list[Quote]:
        """Get the quotes on a topic page such as "random"."""
        logger.debug(f"Fetching quotes for topic {topic}")
        return parse_quotes(self._fetch(f"{self.base_url}/{topic}"))

    def get_quote(self, quote_id: str) -> Quote:
        """Get a single quote by ID."""
        quotes = parse_quotes(self._fetch(f"{self.base_url}/quote/{quote_id}"))
        if not quotes:
            raise QuoteNotFoundError(f"no quote with id {quote_id}")
        return quotes[0]

    def search(self, text: str) -> list[Quote]:
        """Search the archive for quotes containing ``text``."""
        logger.debug(f"Searching archive for {text!r}")
        return parse_quotes(self._fetch(f"{self.base_url}/index?text={encode_search_query(text)}"))

    def vote(self, quote_id: str, vote: Vote) -> bool:
        """
        Vote for a quote.

        Best effort: returns False and logs when the vote was not accepted.
        """
        url = f"{self.base_url}/quote/{quote_id}/{vote.value}"

        with httpx.Client(timeout=self.timeout) as client:
            try:
                response = client.post(
                    url,
                    data={"quote": quote_id, "act": vote.value},
                    headers={"Referer": f"{self.base_url}/"},
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning(f"Vote {vote.value} for quote {quote_id} failed: {e}")
                return False

        logger.debug(f"Voted {vote.value} for quote {quote_id}")
        return True
