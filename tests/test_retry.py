"""retry module unit tests."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from price_watch.logger import get_logs
from price_watch.models import FetchOutcome
from price_watch.retry import (
    MAX_ATTEMPTS,
    Attempting,
    Exhausted,
    Resolved,
    advance,
    resolve_price,
)

FOUND = FetchOutcome(price=4990, found=True)
NOT_FOUND = FetchOutcome()
ERROR = FetchOutcome(error="HTTP 503")


def _resolve(**kwargs):
    return asyncio.run(
        resolve_price(
            None,
            "https://shop.example/item",
            "span.price",
            "content",
            company="Shop A",
            model="Apple AirPods",
            **kwargs,
        )
    )


class TestAdvance:
    """Retry state machine transitions."""

    def test_success_resolves(self):
        assert advance(Attempting(5), FOUND, 1) == Resolved(4990)

    def test_success_on_last_attempt(self):
        assert advance(Attempting(0), FOUND, 30) == Resolved(4990)

    def test_failure_counts_down(self):
        assert advance(Attempting(5), ERROR, 1) == Attempting(4)
        assert advance(Attempting(5), NOT_FOUND, 1) == Attempting(4)

    def test_failure_at_zero_exhausts(self):
        assert advance(Attempting(0), ERROR, 30) == Exhausted(30)
        assert advance(Attempting(0), NOT_FOUND, 30) == Exhausted(30)


class TestResolvePrice:
    """resolve_price tests."""

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_first_attempt_success(self, mock_fetch):
        mock_fetch.return_value = FOUND

        assert _resolve() == 4990
        assert mock_fetch.await_count == 1

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_retries_until_found(self, mock_fetch):
        mock_fetch.side_effect = [ERROR, NOT_FOUND, FOUND, FOUND]

        assert _resolve(max_attempts=10) == 4990
        assert mock_fetch.await_count == 3

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_always_error_uses_exact_budget(self, mock_fetch):
        mock_fetch.return_value = ERROR

        assert _resolve() == 0
        assert mock_fetch.await_count == MAX_ATTEMPTS == 30

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_never_matches_uses_exact_budget(self, mock_fetch):
        mock_fetch.return_value = NOT_FOUND

        assert _resolve(max_attempts=7) == 0
        assert mock_fetch.await_count == 7

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_success_on_last_attempt(self, mock_fetch):
        mock_fetch.side_effect = [ERROR, ERROR, FOUND]

        assert _resolve(max_attempts=3) == 4990
        assert mock_fetch.await_count == 3

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_single_attempt(self, mock_fetch):
        mock_fetch.return_value = ERROR

        assert _resolve(max_attempts=1) == 0
        assert mock_fetch.await_count == 1

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_fetch_arguments(self, mock_fetch):
        mock_fetch.return_value = FOUND

        _resolve(timeout=12.5)

        mock_fetch.assert_awaited_once_with(
            None, "https://shop.example/item", "span.price", "content", timeout=12.5
        )

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_backoff_still_bounded(self, mock_fetch):
        mock_fetch.return_value = ERROR

        assert _resolve(max_attempts=3, base_backoff=0.001) == 0
        assert mock_fetch.await_count == 3

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            _resolve(max_attempts=0)


class TestRetryDiagnostics:
    """One diagnostic record per attempt, outcome kinds kept apart."""

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_record_per_attempt(self, mock_fetch):
        mock_fetch.side_effect = [ERROR, NOT_FOUND, FOUND]

        _resolve(max_attempts=5)

        attempts = [ev for ev in get_logs(context="retry") if "attempt" in ev["extra"]]
        assert [ev["extra"]["outcome"] for ev in attempts] == [
            "error", "not_found", "resolved",
        ]
        assert [ev["extra"]["attempts_remaining"] for ev in attempts] == [4, 3, 2]
        assert all(ev["extra"]["company"] == "Shop A" for ev in attempts)
        assert all(ev["extra"]["model"] == "Apple AirPods" for ev in attempts)

    @patch("price_watch.retry.fetch_price", new_callable=AsyncMock)
    def test_exhaustion_logged(self, mock_fetch):
        mock_fetch.return_value = NOT_FOUND

        _resolve(max_attempts=2)

        assert len(get_logs(context="retry", text="gave up")) == 1
        assert len(get_logs(context="retry", text="attempt")) == 3
