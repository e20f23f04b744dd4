"""scraping module unit tests."""

import asyncio

import aiohttp
import pytest

from price_watch.scraping import extract_price, fetch_price

PAGE = """
<html><body>
  <div class="card">
    <span class="price" content="54990" data-old="59990">54 990 ₽</span>
    <span class="price" content="1">second match</span>
  </div>
  <meta itemprop="price" content=" 1290 ">
  <span class="bad" content="54 990">x</span>
  <span class="neg" content="-5">x</span>
</body></html>
"""


class _FakeResponse:
    def __init__(self, text: str, status: int = 200):
        self.status = status
        self._text = text

    async def text(self, encoding=None, errors="strict"):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    """Stands in for aiohttp.ClientSession.get()."""

    def __init__(self, result):
        self.result = result
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def _fetch(session, link="https://shop.example/item", selector="span.price", attribute="content"):
    return asyncio.run(fetch_price(session, link, selector, attribute, timeout=5))


class TestExtractPrice:
    """extract_price tests."""

    def test_first_match_wins(self):
        outcome = extract_price(PAGE, "span.price", "content")
        assert outcome.found is True
        assert outcome.price == 54990
        assert outcome.error is None

    def test_whitespace_is_trimmed(self):
        outcome = extract_price(PAGE, "meta[itemprop=price]", "content")
        assert outcome.price == 1290

    def test_missing_selector_is_not_found(self):
        outcome = extract_price(PAGE, "div.nothing-here", "content")
        assert outcome.found is False
        assert outcome.error is None
        assert outcome.kind == "not_found"

    def test_missing_attribute_is_not_found(self):
        outcome = extract_price(PAGE, "span.price", "data-price")
        assert outcome.found is False
        assert outcome.error is None

    def test_non_integer_is_error(self):
        outcome = extract_price(PAGE, "span.bad", "content")
        assert outcome.found is False
        assert outcome.error is not None
        assert outcome.kind == "error"

    def test_negative_is_error(self):
        outcome = extract_price(PAGE, "span.neg", "content")
        assert outcome.error is not None

    @pytest.mark.parametrize("value", ["1_000", "٥٠", "１２", "12.5", "+"])
    def test_only_ascii_digits_accepted(self, value):
        html = f'<span class="p" content="{value}"></span>'
        outcome = extract_price(html, "span.p", "content")
        assert outcome.kind == "error"
        assert outcome.price == 0

    def test_explicit_plus_sign(self):
        outcome = extract_price('<span class="p" content="+75"></span>', "span.p", "content")
        assert outcome.price == 75
        assert outcome.found is True


class TestFetchPrice:
    """fetch_price tests."""

    def test_success(self):
        session = _FakeSession(_FakeResponse(PAGE))
        outcome = _fetch(session)

        assert outcome.found is True
        assert outcome.price == 54990
        assert len(session.calls) == 1
        url, kwargs = session.calls[0]
        assert url == "https://shop.example/item"
        assert "User-Agent" in kwargs["headers"]
        assert kwargs["timeout"].total == 5

    def test_http_error_status(self):
        outcome = _fetch(_FakeSession(_FakeResponse("gone", status=404)))
        assert outcome.found is False
        assert outcome.error == "HTTP 404"

    def test_network_error(self):
        outcome = _fetch(_FakeSession(aiohttp.ClientConnectionError("reset")))
        assert outcome.found is False
        assert "ClientConnectionError" in outcome.error

    def test_timeout(self):
        outcome = _fetch(_FakeSession(asyncio.TimeoutError()))
        assert outcome.found is False
        assert outcome.error.startswith("Timeout")

    def test_invalid_selector_is_error(self):
        outcome = _fetch(_FakeSession(_FakeResponse(PAGE)), selector="span[")
        assert outcome.found is False
        assert outcome.error.startswith("Parse error")

    def test_not_found_page(self):
        outcome = _fetch(_FakeSession(_FakeResponse("<html></html>")))
        assert outcome.found is False
        assert outcome.error is None

    def test_empty_link_rejected(self):
        session = _FakeSession(_FakeResponse(PAGE))
        with pytest.raises(ValueError):
            _fetch(session, link="")
        assert session.calls == []
