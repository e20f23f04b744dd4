"""Shared fixtures for the price_watch test suite."""

import pytest

from price_watch import logger
from price_watch.models import Catalog, Company


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    """Fresh log buffer per test; JSONL exports land in tmp_path."""
    logger.clear_logs()
    monkeypatch.setattr(logger, "LOG_ROOT", tmp_path / "logs")
    logger.set_run_mode("prod")
    yield
    logger.clear_logs()


@pytest.fixture
def catalog():
    return Catalog(("Apple iPhone X 64Gb", "Apple iPhone 8 64Gb", "Apple AirPods"))


@pytest.fixture
def companies():
    return [
        Company(
            title="Shop A",
            selector="span.price",
            attribute="content",
            links=("https://a.example/x", "https://a.example/8", ""),
            color="FFCC00",
        ),
        Company(
            title="Shop B",
            selector="meta[itemprop=price]",
            attribute="content",
            links=("https://b.example/x", "", "https://b.example/pods"),
            color="00CCFF",
        ),
    ]
