# price_watch/workbook.py
from __future__ import annotations

import math
from datetime import date
from pathlib import Path
from typing import List, Optional

import pandas as pd
import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from .config import BASELINE_COLOR, BASELINE_COLUMN, BASELINE_HEADER_ROWS
from .logger import log
from .models import Catalog, ComparisonResult, PriceMatrix

SHEET_TITLE = "Prices"
WARNING_COLOR = "FF0000"
ROW_HEIGHT = 25
MODEL_COLUMN_WIDTH = 30

_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_CENTRED = Alignment(horizontal="center", vertical="center")
_FONT = Font(name="Verdana", size=12)
_BOLD = Font(name="Verdana", size=12, bold=True)


class BaselineError(ValueError):
    """The prior snapshot could not be read as a baseline price column."""


def _fill(color: str) -> PatternFill:
    return PatternFill(fill_type="solid", start_color=color, end_color=color)


def _cell_to_price(value) -> int:
    """Whole-number cells become prices; anything else counts as unresolved."""
    try:
        num = float(pd.to_numeric(value, errors="coerce"))
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(num) or num != int(num) or num < 0:
        return 0
    return int(num)


# --------------------------------------------------------------
# Baseline from prior snapshot
# --------------------------------------------------------------

def load_baseline_prices(
    workbook_path: Path,
    catalog: Catalog,
    header_rows: int = BASELINE_HEADER_ROWS,
    column: int = BASELINE_COLUMN,
) -> List[int]:
    """
    Read baseline prices from the first sheet of the prior snapshot.

    Skips `header_rows`, then row k holds the baseline for catalog[k] in
    column `column`. Rows that do not hold an integer leave that model at 0.
    """
    workbook_path = Path(workbook_path)
    log(f"Loading baseline from: {workbook_path}", context="workbook")

    if not workbook_path.exists():
        raise BaselineError(f"Baseline workbook not found at: {workbook_path}")

    try:
        df = pd.read_excel(
            workbook_path,
            sheet_name=0,
            header=None,
            skiprows=header_rows,
            engine="openpyxl",
        )
    except Exception as e:
        log(f"ERROR loading baseline workbook: {e!r}", context="workbook")
        raise BaselineError(f"Could not read {workbook_path}: {e}") from e

    prices = [0] * len(catalog)
    if df.empty:
        log("Baseline sheet has no data rows.", context="workbook")
        return prices

    if column >= df.shape[1]:
        raise BaselineError(
            f"Baseline column {column} not present in {workbook_path} "
            f"({df.shape[1]} columns)."
        )

    # trailing blank rows are not data
    values = df.iloc[:, column].tolist()
    while values and pd.isna(values[-1]):
        values.pop()

    if len(values) > len(catalog):
        raise BaselineError(
            f"Baseline sheet has {len(values)} data rows, "
            f"catalog has {len(catalog)} models."
        )

    for idx, value in enumerate(values):
        prices[idx] = _cell_to_price(value)

    log(
        f"Baseline loaded: {sum(1 for p in prices if p)} of {len(prices)} prices set",
        context="workbook",
    )
    return prices


# --------------------------------------------------------------
# New snapshot
# --------------------------------------------------------------

def save_price_workbook(
    workbook_path: Path,
    matrix: PriceMatrix,
    result: ComparisonResult,
    company_colors: Optional[dict] = None,
    baseline_color: str = BASELINE_COLOR,
    generated_on: Optional[date] = None,
) -> Path:
    """
    Write the price table: a merged date row, a titles row, then one row per
    model with the baseline and every company. Undercut cells are red.
    """
    workbook_path = Path(workbook_path)
    company_colors = company_colors or {}
    generated_on = generated_on or date.today()

    log(f"Saving price workbook → {workbook_path}", context="workbook")

    df = matrix.to_frame()
    n_cols = len(df.columns) + 1

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.column_dimensions["A"].width = MODEL_COLUMN_WIDTH

    # Row 1: generation date across the whole table
    cell = ws.cell(row=1, column=1, value=f"Prices as of: {generated_on:%d-%m-%Y}")
    cell.font = _FONT
    cell.alignment = _CENTRED
    cell.border = _BORDER
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=n_cols)
    ws.row_dimensions[1].height = ROW_HEIGHT

    # Row 2: column titles
    cell = ws.cell(row=2, column=1)
    cell.border = _BORDER
    for col_idx, title in enumerate(df.columns, start=2):
        color = baseline_color if col_idx == 2 else company_colors.get(title, "FFFFFF")
        cell = ws.cell(row=2, column=col_idx, value=title)
        cell.font = _FONT
        cell.fill = _fill(color)
        cell.alignment = _CENTRED
        cell.border = _BORDER
    ws.row_dimensions[2].height = ROW_HEIGHT

    # Model rows
    for row_offset, (model, row) in enumerate(df.iterrows()):
        excel_row = row_offset + 3
        ws.row_dimensions[excel_row].height = ROW_HEIGHT

        cell = ws.cell(row=excel_row, column=1, value=model)
        cell.font = _BOLD
        cell.alignment = Alignment(vertical="center")
        cell.border = _BORDER

        for col_idx, title in enumerate(df.columns, start=2):
            cell = ws.cell(row=excel_row, column=col_idx, value=int(row[title]))
            cell.font = _FONT
            cell.alignment = _CENTRED
            cell.border = _BORDER

            if col_idx == 2:
                cell.fill = _fill(baseline_color)
            elif result.is_undercut(title, row_offset):
                cell.fill = _fill(WARNING_COLOR)
            else:
                cell.fill = _fill(company_colors.get(title, "FFFFFF"))

    workbook_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(workbook_path)
    log("Workbook saved.", context="workbook")
    return workbook_path
