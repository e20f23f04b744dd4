# price_watch/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import pandas as pd


@dataclass(frozen=True)
class Catalog:
    """Ordered model names. Catalog index i means the same model everywhere."""

    models: Tuple[str, ...]

    def __post_init__(self) -> None:
        for name in self.models:
            if not str(name).strip():
                raise ValueError("Catalog model names must be non-empty.")
        if len(set(self.models)) != len(self.models):
            raise ValueError("Catalog model names must be unique.")

    def __len__(self) -> int:
        return len(self.models)

    def __getitem__(self, idx: int) -> str:
        return self.models[idx]

    def __iter__(self) -> Iterator[str]:
        return iter(self.models)

    def require_aligned(self, seq: Sequence, what: str) -> None:
        if len(seq) != len(self.models):
            raise ValueError(
                f"{what} has {len(seq)} entries, catalog has {len(self.models)}."
            )


@dataclass(frozen=True)
class Company:
    """A competitor source: title, extraction rule and one link per model."""

    title: str
    selector: str
    attribute: str
    links: Tuple[str, ...]
    color: str = "FFFFFF"


@dataclass
class PriceMatrix:
    """
    Resolved prices per (company, catalog index), plus the baseline column.

    Company cells start at 0 (unresolved) and accept exactly one write each.
    """

    catalog: Catalog
    companies: List[str]
    baseline_title: str = "iMarket"
    baseline: List[int] = field(default_factory=list)
    _prices: Dict[str, List[int]] = field(default_factory=dict, init=False, repr=False)
    _written: Set[Tuple[str, int]] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        if len(set(self.companies)) != len(self.companies):
            raise ValueError("Company titles must be unique.")
        if self.baseline_title in self.companies:
            raise ValueError(
                f"Baseline title {self.baseline_title!r} clashes with a company title."
            )
        if self.baseline:
            self.catalog.require_aligned(self.baseline, "Baseline")
        else:
            self.baseline = [0] * len(self.catalog)
        self._prices = {title: [0] * len(self.catalog) for title in self.companies}

    def set_price(self, company: str, idx: int, price: int) -> None:
        if company not in self._prices:
            raise KeyError(f"Unknown company: {company!r}")
        if not 0 <= idx < len(self.catalog):
            raise IndexError(f"Catalog index out of range: {idx}")
        if price < 0:
            raise ValueError(f"Negative price for {company!r}[{idx}]: {price}")
        key = (company, idx)
        if key in self._written:
            raise RuntimeError(f"Price cell {company!r}[{idx}] already written.")
        self._written.add(key)
        self._prices[company][idx] = int(price)

    def set_baseline(self, prices: Sequence[int]) -> None:
        self.catalog.require_aligned(prices, "Baseline")
        self.baseline = [int(p) for p in prices]

    def prices_for(self, company: str) -> List[int]:
        return list(self._prices[company])

    def price(self, company: str, idx: int) -> int:
        return self._prices[company][idx]

    def is_written(self, company: str, idx: int) -> bool:
        return (company, idx) in self._written

    def to_frame(self) -> pd.DataFrame:
        """Models as rows; baseline first, then companies in config order."""
        data = {self.baseline_title: list(self.baseline)}
        for title in self.companies:
            data[title] = list(self._prices[title])
        df = pd.DataFrame(data, index=list(self.catalog.models))
        df.index.name = "model"
        return df


@dataclass(frozen=True)
class ComparisonResult:
    """Undercut flags per company plus the run-level summary."""

    catalog: Catalog
    baseline: Tuple[int, ...]
    prices: Dict[str, Tuple[int, ...]]
    flags: Dict[str, Tuple[bool, ...]]
    any_undercut: bool

    def is_undercut(self, company: str, idx: int) -> bool:
        return self.flags[company][idx]

    def undercuts(self) -> List[Tuple[str, str, int, int]]:
        """(company, model, competitor price, baseline price) per flagged cell."""
        out: List[Tuple[str, str, int, int]] = []
        for company, flags in self.flags.items():
            for idx, flagged in enumerate(flags):
                if flagged:
                    out.append(
                        (
                            company,
                            self.catalog[idx],
                            self.prices[company][idx],
                            self.baseline[idx],
                        )
                    )
        return out


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a single fetch attempt. `error` is None unless it failed."""

    price: int = 0
    found: bool = False
    error: Optional[str] = None

    @property
    def kind(self) -> str:
        if self.error is not None:
            return "error"
        return "resolved" if self.found else "not_found"
