# price_watch/retry.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Union

import aiohttp

from .logger import log
from .models import FetchOutcome
from .scraping import DEFAULT_TIMEOUT, fetch_price

MAX_ATTEMPTS = 30


@dataclass(frozen=True)
class Attempting:
    """An attempt is in flight; `remaining` more are allowed after it."""

    remaining: int


@dataclass(frozen=True)
class Resolved:
    price: int


@dataclass(frozen=True)
class Exhausted:
    attempts: int


RetryState = Union[Attempting, Resolved, Exhausted]


def advance(state: Attempting, outcome: FetchOutcome, attempts_made: int) -> RetryState:
    """
    Transition after one attempt:

      found           → Resolved(price)
      failed, n > 0   → Attempting(n - 1)
      failed, n == 0  → Exhausted
    """
    if outcome.found and outcome.error is None:
        return Resolved(outcome.price)
    if state.remaining > 0:
        return Attempting(state.remaining - 1)
    return Exhausted(attempts_made)


async def resolve_price(
    session: aiohttp.ClientSession,
    link: str,
    selector: str,
    attribute: str,
    company: str = "",
    model: str = "",
    max_attempts: int = MAX_ATTEMPTS,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    base_backoff: float = 0.0,
) -> int:
    """
    Fetch `link` until a price is found or `max_attempts` is used up.

    Errors and "not found" outcomes are both retried. Running out of attempts
    gives 0 (unresolved) and never raises, so one dead link cannot sink a run.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    state: RetryState = Attempting(max_attempts - 1)
    attempt = 0

    while isinstance(state, Attempting):
        attempt += 1
        outcome = await fetch_price(session, link, selector, attribute, timeout=timeout)

        log(
            f"{company} - {model}: attempt {attempt}/{max_attempts} {outcome.kind}",
            context="retry",
            extra={
                "company": company,
                "model": model,
                "link": link,
                "attempt": attempt,
                "attempts_remaining": state.remaining,
                "outcome": outcome.kind,
                "error": outcome.error,
            },
        )

        state = advance(state, outcome, attempt)

        if isinstance(state, Attempting) and base_backoff > 0:
            await asyncio.sleep(base_backoff * attempt)

    if isinstance(state, Resolved):
        return state.price

    log(
        f"{company} - {model}: gave up after {state.attempts} attempts",
        context="retry",
        extra={
            "company": company,
            "model": model,
            "link": link,
            "attempts": state.attempts,
            "selector": selector,
            "attribute": attribute,
        },
    )
    return 0
