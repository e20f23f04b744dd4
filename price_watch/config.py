# price_watch/config.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional

from .models import Catalog, Company
from .retry import MAX_ATTEMPTS
from .scraping import DEFAULT_TIMEOUT

# -------------------------
# Base project root
# -------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# -------------------------
# Default local file paths
# -------------------------

DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.json"

# Prior snapshot: read for the baseline, then replaced by the new one
DEFAULT_WORKBOOK_PATH = PROJECT_ROOT / "prices.xlsx"

# Scraping concurrency
MAX_CONCURRENCY = 20

# -------------------------
# Baseline defaults
# -------------------------

BASELINE_TITLE = "iMarket"
BASELINE_COLOR = "CEFF00"
BASELINE_HEADER_ROWS = 2   # date row + titles row
BASELINE_COLUMN = 1        # 0 is the model name

DEFAULT_CATALOG: List[str] = [
    "Apple iPhone X 64Gb",
    "Apple iPhone X 256Gb",
    "Apple iPhone 8 64Gb",
    "Apple iPhone 8 256Gb",
    "Apple iPhone 8 Plus 64Gb",
    "Apple iPhone 8 Plus 256Gb",
    "Apple iPhone 7 32Gb",
    "Apple iPhone 7 128Gb",
    "Apple iPhone 7 256Gb",
    "Apple iPhone 7 Plus 32Gb",
    "Apple iPhone 7 Plus 128Gb",
    "Apple iPhone 7 Plus 256Gb",
    "Apple iPhone 6s 32Gb",
    "Apple iPhone 6s 128Gb",
    "Apple iPhone 6s Plus 32Gb",
    "Apple iPhone 6s Plus 128Gb",
    "Apple iPhone SE 32Gb",
    "Apple iPhone SE 128Gb",
    "Apple AirPods",
    "Apple TV 4 32Gb",
    "Apple TV 4 64Gb",
    "Apple TV 4K 32Gb",
    "Apple TV 4K 64Gb",
    "Apple iPad Pro 10.5 64Gb",
    "Apple iPad Pro 10.5 256Gb",
    "Apple iPad Pro 10.5 512Gb",
    "Apple iPad Pro 10.5 Cellular 64Gb",
    "Apple iPad Pro 10.5 Cellular 256Gb",
    "Apple iPad Pro 10.5 Cellular 512Gb",
]

SMTP_KEYS = ["server", "port", "username", "password", "from", "to"]


class ConfigError(ValueError):
    """Configuration could not be loaded or does not line up with the catalog."""


@dataclass(frozen=True)
class BaselineSettings:
    title: str = BASELINE_TITLE
    color: str = BASELINE_COLOR
    header_rows: int = BASELINE_HEADER_ROWS
    column: int = BASELINE_COLUMN


@dataclass(frozen=True)
class FetchSettings:
    max_attempts: int = MAX_ATTEMPTS
    concurrency: int = MAX_CONCURRENCY
    timeout: Optional[float] = DEFAULT_TIMEOUT
    base_backoff: float = 0.0


@dataclass(frozen=True)
class PriceWatchConfig:
    catalog: Catalog
    companies: List[Company]
    baseline: BaselineSettings = field(default_factory=BaselineSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    smtp: Optional[Dict[str, Any]] = None


def _parse_links(raw_models: Any, title: str) -> List[str]:
    if not isinstance(raw_models, list):
        raise ConfigError(f"Company {title!r}: 'models' must be a list.")

    links: List[str] = []
    for pos, item in enumerate(raw_models):
        if isinstance(item, str):
            links.append(item.strip())
        elif isinstance(item, dict):
            links.append(str(item.get("link") or "").strip())
        elif item is None:
            links.append("")
        else:
            raise ConfigError(
                f"Company {title!r}: models[{pos}] must be a link string or "
                f"an object with 'link'."
            )
    return links


def _parse_company(raw: Any, catalog: Catalog) -> Company:
    if not isinstance(raw, dict):
        raise ConfigError(f"Company entries must be objects, got {type(raw).__name__}.")

    missing = [k for k in ("title", "selector", "attribute", "models") if k not in raw]
    if missing:
        raise ConfigError(f"Company entry is missing keys: {missing}")

    title = str(raw["title"]).strip()
    if not title:
        raise ConfigError("Company title must be non-empty.")

    links = _parse_links(raw["models"], title)
    if len(links) != len(catalog):
        raise ConfigError(
            f"Company {title!r} lists {len(links)} links, "
            f"catalog has {len(catalog)} models."
        )

    return Company(
        title=title,
        selector=str(raw["selector"]),
        attribute=str(raw["attribute"]),
        links=tuple(links),
        color=str(raw.get("color") or "FFFFFF"),
    )


def _parse_fetch(raw: Any) -> FetchSettings:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'fetch' must be an object.")
    # timeout of 0 or null means "no per-attempt timeout"
    timeout = raw.get("timeout", DEFAULT_TIMEOUT)
    try:
        settings = FetchSettings(
            max_attempts=int(raw.get("max_attempts", MAX_ATTEMPTS)),
            concurrency=int(raw.get("concurrency", MAX_CONCURRENCY)),
            timeout=float(timeout) if timeout else None,
            base_backoff=float(raw.get("base_backoff", 0.0)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid 'fetch' section: {e}") from e

    if settings.max_attempts < 1:
        raise ConfigError("fetch.max_attempts must be >= 1.")
    if settings.concurrency < 1:
        raise ConfigError("fetch.concurrency must be >= 1.")
    if settings.base_backoff < 0:
        raise ConfigError("fetch.base_backoff must be >= 0.")
    return settings


def _parse_baseline(raw: Any) -> BaselineSettings:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'baseline' must be an object.")
    try:
        settings = BaselineSettings(
            title=str(raw.get("title") or BASELINE_TITLE),
            color=str(raw.get("color") or BASELINE_COLOR),
            header_rows=int(raw.get("header_rows", BASELINE_HEADER_ROWS)),
            column=int(raw.get("column", BASELINE_COLUMN)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid 'baseline' section: {e}") from e

    if settings.header_rows < 0 or settings.column < 0:
        raise ConfigError("baseline.header_rows and baseline.column must be >= 0.")
    return settings


def _parse_smtp(raw: Any) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise ConfigError("'smtp' must be an object.")
    missing = [k for k in SMTP_KEYS if k not in raw]
    if missing:
        raise ConfigError(f"'smtp' section is missing keys: {missing}")
    smtp = dict(raw)
    try:
        smtp["port"] = int(smtp["port"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid smtp.port: {smtp['port']!r}") from e
    return smtp


def parse_config(data: Any) -> PriceWatchConfig:
    """
    Build a validated config from decoded JSON.

    Accepts either the full object layout:

        {
          "catalog": [...],            # optional, DEFAULT_CATALOG otherwise
          "companies": [...],
          "baseline": {...},           # optional
          "fetch": {...},              # optional
          "smtp": {...}                # optional
        }

    or a bare list of companies.
    """
    if isinstance(data, list):
        data = {"companies": data}
    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object or a list of companies.")
    if "companies" not in data:
        raise ConfigError("Config is missing 'companies'.")

    raw_catalog = data.get("catalog") or DEFAULT_CATALOG
    if not isinstance(raw_catalog, list):
        raise ConfigError("'catalog' must be a list of model names.")
    try:
        catalog = Catalog(tuple(str(m).strip() for m in raw_catalog))
    except ValueError as e:
        raise ConfigError(str(e)) from e

    raw_companies = data["companies"]
    if not isinstance(raw_companies, list):
        raise ConfigError("'companies' must be a list.")
    companies = [_parse_company(c, catalog) for c in raw_companies]

    titles = [c.title for c in companies]
    dupes = sorted({t for t in titles if titles.count(t) > 1})
    if dupes:
        raise ConfigError(f"Duplicate company titles: {dupes}")

    baseline = _parse_baseline(data.get("baseline"))
    if baseline.title in titles:
        raise ConfigError(
            f"Baseline title {baseline.title!r} is also used by a company."
        )

    return PriceWatchConfig(
        catalog=catalog,
        companies=companies,
        baseline=baseline,
        fetch=_parse_fetch(data.get("fetch")),
        smtp=_parse_smtp(data.get("smtp")),
    )


def load_config(config_path: Path | str | None = None) -> PriceWatchConfig:
    """Read and validate the JSON config file."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found at: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {config_path} is not valid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config file {config_path} is not UTF-8: {e}") from e

    return parse_config(data)
