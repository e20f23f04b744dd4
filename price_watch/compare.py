# price_watch/compare.py
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .models import ComparisonResult, PriceMatrix


def compare_prices(baseline: Sequence[int], competitor: Sequence[int]) -> List[bool]:
    """
    Flag each catalog index where the competitor undercuts the baseline.

    flag[i] is True iff competitor[i] > 0 and baseline[i] >= competitor[i].
    Equal prices count as an undercut; an unresolved competitor (0) never does.
    """
    if len(baseline) != len(competitor):
        raise ValueError(
            f"Length mismatch: baseline={len(baseline)} competitor={len(competitor)}"
        )
    return [c > 0 and b >= c for b, c in zip(baseline, competitor)]


def compare_matrix(matrix: PriceMatrix) -> ComparisonResult:
    """Compare every company column against the baseline column."""
    baseline = tuple(matrix.baseline)
    prices: Dict[str, Tuple[int, ...]] = {}
    flags: Dict[str, Tuple[bool, ...]] = {}

    for company in matrix.companies:
        column = tuple(matrix.prices_for(company))
        prices[company] = column
        flags[company] = tuple(compare_prices(baseline, column))

    any_undercut = any(any(col) for col in flags.values())

    return ComparisonResult(
        catalog=matrix.catalog,
        baseline=baseline,
        prices=prices,
        flags=flags,
        any_undercut=any_undercut,
    )
