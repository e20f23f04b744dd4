# price_watch/scraping.py
from __future__ import annotations

import asyncio
import re
from typing import Dict, Optional

import aiohttp
from bs4 import BeautifulSoup

from .models import FetchOutcome

DEFAULT_TIMEOUT = 30.0  # seconds, per attempt

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# ASCII digits only, no "1_000" or non-Latin numerals
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def extract_price(html: str, selector: str, attribute: str) -> FetchOutcome:
    """
    Pull the price out of `attribute` on the first element matching `selector`.

    A missing element or attribute is a normal "not found" outcome. A value
    that is not a non-negative integer is an error.
    """
    soup = BeautifulSoup(html, "html.parser")
    node = soup.select_one(selector)
    if node is None:
        return FetchOutcome()

    raw = node.get(attribute)
    if raw is None:
        return FetchOutcome()
    if isinstance(raw, list):
        # multi-valued attributes (class, rel) come back as lists
        raw = " ".join(raw)

    text = str(raw).strip()
    if not _INT_PATTERN.fullmatch(text):
        return FetchOutcome(error=f"Attribute {attribute!r} is not an integer: {text!r}")
    price = int(text)
    if price < 0:
        return FetchOutcome(error=f"Attribute {attribute!r} is negative: {price}")

    return FetchOutcome(price=price, found=True)


async def fetch_price(
    session: aiohttp.ClientSession,
    link: str,
    selector: str,
    attribute: str,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    headers: Optional[Dict[str, str]] = None,
) -> FetchOutcome:
    """
    One read-only GET of `link`, then selector/attribute extraction.

    Never raises for network, HTTP or parsing trouble; those come back in
    `FetchOutcome.error` so the retry layer can decide what to do.
    """
    if not link:
        raise ValueError("fetch_price() needs a non-empty link.")

    request_kwargs: Dict[str, object] = {"headers": headers or DEFAULT_HEADERS}
    if timeout:
        request_kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

    try:
        async with session.get(link, **request_kwargs) as resp:
            status = resp.status
            if status >= 400:
                return FetchOutcome(error=f"HTTP {status}")
            html = await resp.text(errors="replace")

    except asyncio.TimeoutError as exc:
        return FetchOutcome(error=f"Timeout: {exc!r}")

    except aiohttp.ClientError as exc:
        # DNS/SSL/connection resets
        return FetchOutcome(error=f"{type(exc).__name__}: {exc}")

    try:
        return extract_price(html, selector, attribute)
    except Exception as exc:
        # bad selectors surface here from soupsieve
        return FetchOutcome(error=f"Parse error: {type(exc).__name__}: {exc}")
