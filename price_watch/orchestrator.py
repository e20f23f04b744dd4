# price_watch/orchestrator.py
from __future__ import annotations

import argparse
import asyncio
import time
from pathlib import Path
from typing import Optional, Dict, Any, List, Sequence

import aiohttp

from .config import (
    load_config,
    ConfigError,
    DEFAULT_CONFIG_PATH,
    DEFAULT_WORKBOOK_PATH,
    MAX_CONCURRENCY,
)
from .compare import compare_matrix
from .logger import log, set_log_root, set_run_mode, export_logs_as_jsonl
from .models import Catalog, Company, PriceMatrix
from .notifier import notify_undercuts_async
from .retry import MAX_ATTEMPTS, resolve_price
from .scraping import DEFAULT_HEADERS, DEFAULT_TIMEOUT
from .workbook import BaselineError, load_baseline_prices, save_price_workbook


# -------------------------------------------------------------------
# Concurrent price collection
# -------------------------------------------------------------------


async def collect_prices_async(
    companies: Sequence[Company],
    catalog: Catalog,
    concurrency: int = MAX_CONCURRENCY,
    max_attempts: int = MAX_ATTEMPTS,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    base_backoff: float = 0.0,
    baseline_title: str = "iMarket",
) -> PriceMatrix:
    """
    Resolve one price per (company, model-with-link) and return the matrix.

    Each cell is owned by a single task. At most `concurrency` tasks are
    fetching at once. A company is done once all of its tasks are; the run is
    done once every company is. Cells with an empty link stay 0 and are
    never fetched.
    """
    for company in companies:
        catalog.require_aligned(company.links, f"Links of {company.title!r}")

    matrix = PriceMatrix(
        catalog=catalog,
        companies=[c.title for c in companies],
        baseline_title=baseline_title,
    )
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async with aiohttp.ClientSession(headers=DEFAULT_HEADERS) as session:

        async def worker(company: Company, idx: int, link: str) -> None:
            async with semaphore:
                price = await resolve_price(
                    session,
                    link,
                    company.selector,
                    company.attribute,
                    company=company.title,
                    model=catalog[idx],
                    max_attempts=max_attempts,
                    timeout=timeout,
                    base_backoff=base_backoff,
                )
            matrix.set_price(company.title, idx, price)

        async def process(company: Company) -> None:
            tasks = [
                asyncio.create_task(worker(company, idx, link))
                for idx, link in enumerate(company.links)
                if link
            ]
            await asyncio.gather(*tasks)

            resolved = sum(1 for p in matrix.prices_for(company.title) if p)
            print(
                f"[orchestrator] {company.title}: {resolved}/{len(tasks)} prices resolved"
            )
            log(
                f"{company.title} complete",
                context="orchestrator",
                extra={"links": len(tasks), "resolved": resolved},
            )

        await asyncio.gather(*(process(c) for c in companies))

    return matrix


# -------------------------------------------------------------------
# Full pipeline: config → fetch → compare → workbook → alert
# -------------------------------------------------------------------


async def run_price_check_async(
    config_path: Path,
    workbook_path: Path,
    concurrency: Optional[int] = None,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    base_backoff: Optional[float] = None,
    dry_run: bool = False,
    notify: bool = True,
) -> Dict[str, Any]:
    """
    1) Load config (catalog, companies, fetch settings).
    2) Read the baseline column from the prior snapshot.
    3) Fetch every competitor price concurrently.
    4) Compare against the baseline.
    5) Replace the snapshot with the new table.
    6) Alert if anything was undercut.

    Load and save errors propagate; nothing is fetched if loading fails.
    """
    start = time.perf_counter()
    set_run_mode("test" if dry_run else "prod")

    print("🔐 Loading config...")
    cfg = load_config(config_path)
    fetch = cfg.fetch
    print(
        f"[orchestrator] Config loaded: {len(cfg.catalog)} models, "
        f"{len(cfg.companies)} companies"
    )

    workbook_path = Path(workbook_path)
    baseline = load_baseline_prices(
        workbook_path,
        cfg.catalog,
        header_rows=cfg.baseline.header_rows,
        column=cfg.baseline.column,
    )

    concurrency = concurrency if concurrency is not None else fetch.concurrency
    max_attempts = max_attempts if max_attempts is not None else fetch.max_attempts
    timeout = timeout if timeout is not None else fetch.timeout
    base_backoff = base_backoff if base_backoff is not None else fetch.base_backoff
    if max_attempts < 1 or concurrency < 1 or base_backoff < 0:
        raise ConfigError(
            "max_attempts and concurrency must be >= 1 and backoff >= 0."
        )

    n_links = sum(1 for c in cfg.companies for link in c.links if link)
    print(
        f"[orchestrator] Fetching {n_links} links with concurrency={concurrency}, "
        f"max_attempts={max_attempts}"
    )

    matrix = await collect_prices_async(
        cfg.companies,
        cfg.catalog,
        concurrency=concurrency,
        max_attempts=max_attempts,
        timeout=timeout,
        base_backoff=base_backoff,
        baseline_title=cfg.baseline.title,
    )
    matrix.set_baseline(baseline)

    result = compare_matrix(matrix)
    undercuts = result.undercuts()
    log(
        "Comparison complete",
        context="orchestrator",
        extra={"any_undercut": result.any_undercut, "undercuts": len(undercuts)},
    )

    if dry_run:
        print("[orchestrator] Dry run: workbook not written, no alert sent.")
        print(matrix.to_frame().to_string())
    else:
        save_price_workbook(
            workbook_path,
            matrix,
            result,
            company_colors={c.title: c.color for c in cfg.companies},
            baseline_color=cfg.baseline.color,
        )
        print(f"[orchestrator] File `{workbook_path}` updated")

        if notify:
            await notify_undercuts_async(result, smtp=cfg.smtp, attachment_path=workbook_path)

    elapsed = time.perf_counter() - start
    log_path = export_logs_as_jsonl()
    print(f"[orchestrator] Time spent: {elapsed:.1f}s")

    return {
        "workbook_path": str(workbook_path),
        "models": len(cfg.catalog),
        "companies": len(cfg.companies),
        "any_undercut": result.any_undercut,
        "undercuts": len(undercuts),
        "elapsed_s": round(elapsed, 1),
        "log_path": log_path,
    }


# -------------------------------------------------------------------
# CLI plumbing
# -------------------------------------------------------------------


def build_cli_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description=(
            "Competitor price watch.\n"
            "Fetches competitor prices, compares them with the baseline column of "
            "the price workbook and rewrites the workbook."
        )
    )

    p.add_argument(
        "-c",
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to the JSON config file (default: config.json).",
    )
    p.add_argument(
        "--workbook-path",
        type=str,
        default=str(DEFAULT_WORKBOOK_PATH),
        help="Price workbook: baseline is read from it, then it is replaced.",
    )
    p.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Max simultaneous fetches (overrides config).",
    )
    p.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Attempts per link before giving up (overrides config).",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-attempt timeout in seconds (overrides config).",
    )
    p.add_argument(
        "--backoff",
        type=float,
        default=None,
        help="Linear backoff base in seconds between attempts (overrides config).",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and compare only; do not write the workbook or alert.",
    )
    p.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not alert even if a competitor is cheaper.",
    )
    p.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Root folder for JSONL diagnostics (default: logs/).",
    )
    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_cli_parser()
    args = parser.parse_args(argv)

    if args.log_dir:
        set_log_root(args.log_dir)

    try:
        meta = asyncio.run(
            run_price_check_async(
                config_path=Path(args.config),
                workbook_path=Path(args.workbook_path),
                concurrency=args.concurrency,
                max_attempts=args.max_attempts,
                timeout=args.timeout,
                base_backoff=args.backoff,
                dry_run=args.dry_run,
                notify=not args.no_notify,
            )
        )
    except (ConfigError, BaselineError, OSError) as e:
        print(f"❌ {e}")
        raise SystemExit(1) from e

    print("\n=== Run metadata ===")
    for k, v in meta.items():
        print(f"{k}: {v}")


if __name__ == "__main__":
    main()
