"""Unit tests for the quote archive client and parser."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from quote_bot.quotes import (
    Quote,
    QuoteNotFoundError,
    QuoteSource,
    QuoteSourceError,
    Vote,
    encode_search_query,
    parse_quotes,
)

PAGE = """
<html><body>
<div class="quote">
  <div class="actions">
    <span class="rating-o"><span class="rating">1234</span></span>
    <a class="id" href="/quote/412345">#412345</a>
  </div>
  <div class="text">xxx: first line<br>yyy: second line &lt;3<!-- ad --></div>
</div>
<div class="quote">
  <div class="actions">
    <span class="rating">-5</span>
    <a class="id" href="/quote/7">#7</a>
  </div>
  <div class="text">short one</div>
</div>
<div class="quote">
  <div class="text">advert block without id or rating</div>
</div>
</body></html>
"""


def page_response(html: str) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.text = html
    response.raise_for_status = MagicMock()
    return response


class TestParseQuotes:
    """Tests for extracting quotes from archive pages."""

    def test_parses_complete_blocks(self):
        quotes = parse_quotes(PAGE)

        assert [q.quote_id for q in quotes] == ["412345", "7"]
        assert quotes[0].rating == "1234"
        assert quotes[1].rating == "-5"

    def test_line_breaks_become_newlines(self):
        quote = parse_quotes(PAGE)[0]
        assert quote.text == "xxx: first line\nyyy: second line <3"

    def test_incomplete_blocks_skipped(self):
        quotes = parse_quotes(PAGE)
        assert all("advert" not in q.text for q in quotes)

    def test_empty_page(self):
        assert parse_quotes("<html><body>nothing here</body></html>") == []


class TestQuote:
    """Tests for the quote model."""

    def test_format(self):
        quote = Quote(quote_id="7", rating="-5", text="short one")
        assert quote.format() == "short one\n\n# 7\n+ -5\n"

    def test_to_dict(self):
        quote = Quote(quote_id="7", rating="-5", text="short one")
        assert quote.to_dict() == {"quote_id": "7", "rating": "-5", "text": "short one"}


class TestEncodeSearchQuery:
    """Tests for windows-1251 query encoding."""

    def test_cyrillic(self):
        assert encode_search_query("кот") == "%EA%EE%F2"

    def test_every_byte_encoded(self):
        assert encode_search_query("a b") == "%61%20%62"

    def test_unencodable_characters_replaced(self):
        assert encode_search_query("😀") == "%3F"


class TestQuoteSource:
    """Tests for the QuoteSource HTTP client."""

    @pytest.fixture
    def source(self):
        return QuoteSource(base_url="http://quotes.example.org/", timeout_seconds=5.0)

    def test_get_quotes(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.get.return_value = page_response(PAGE)

            quotes = source.get_quotes("random")

        assert len(quotes) == 2
        mock_client.assert_called_once_with(timeout=5.0)
        assert mock_instance.get.call_args.args[0] == "http://quotes.example.org/random"

    def test_get_quote(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.get.return_value = page_response(PAGE)

            quote = source.get_quote("412345")

        assert quote.quote_id == "412345"
        assert mock_instance.get.call_args.args[0] == "http://quotes.example.org/quote/412345"

    def test_get_quote_not_found(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.get.return_value = page_response("<html></html>")

            with pytest.raises(QuoteNotFoundError):
                source.get_quote("999")

    def test_search_encodes_query(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.get.return_value = page_response(PAGE)

            quotes = source.search("кот")

        assert len(quotes) == 2
        assert (
            mock_instance.get.call_args.args[0]
            == "http://quotes.example.org/index?text=%EA%EE%F2"
        )

    def test_network_error_raises(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.get.side_effect = httpx.ConnectError("connection refused")

            with pytest.raises(QuoteSourceError):
                source.get_quotes("random")

    def test_http_status_error_raises(self, source):
        response = page_response("")
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "502 Bad Gateway", request=MagicMock(), response=MagicMock()
        )

        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.get.return_value = response

            with pytest.raises(QuoteSourceError):
                source.get_quotes("random")

    def test_vote_posts_form(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.post.return_value = page_response("")

            assert source.vote("412345", Vote.RULEZ) is True

        call = mock_instance.post.call_args
        assert call.args[0] == "http://quotes.example.org/quote/412345/rulez"
        assert call.kwargs["data"] == {"quote": "412345", "act": "rulez"}
        assert call.kwargs["headers"] == {"Referer": "http://quotes.example.org/"}

    def test_vote_failure_returns_false(self, source):
        with patch("httpx.Client") as mock_client:
            mock_instance = MagicMock()
            mock_client.return_value.__enter__.return_value = mock_instance
            mock_instance.post.side_effect = httpx.ConnectError("connection refused")

            assert source.vote("412345", Vote.SUX) is False
