# price_watch/logger.py

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional


# ================================================================
# BASE DIRECTORY
# ================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Root folder for all logs; orchestrator may point it elsewhere
LOG_ROOT = PROJECT_ROOT / "logs"


def set_log_root(path: Path | str) -> None:
    global LOG_ROOT
    LOG_ROOT = Path(path)


# ================================================================
# RUN MODE (test, prod)
# ================================================================

CURRENT_RUN_MODE = "prod"

def set_run_mode(mode: str) -> None:
    """
    Set global logging mode. Options:
        test   → --dry-run (no workbook written, no alert sent)
        prod   → default full pipeline
    """
    global CURRENT_RUN_MODE
    if mode not in ("test", "prod"):
        mode = "prod"
    CURRENT_RUN_MODE = mode


# ================================================================
# IN-MEMORY LOG BUFFER
# ================================================================

_LOG_BUFFER: List[Dict[str, Any]] = []


def log(message: str, context: str = "general", extra: Optional[Dict[str, Any]] = None) -> None:
    """
    Append a structured log entry into the global buffer.
    """
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "mode": CURRENT_RUN_MODE,
        "context": context,
        "message": message,
        "extra": extra or {},
    }
    _LOG_BUFFER.append(event)


def clear_logs() -> None:
    _LOG_BUFFER.clear()


# ================================================================
# JSONL EXPORT
# ================================================================

def export_logs_as_jsonl() -> str:
    """
    Write buffered logs into partitioned paths:

        logs/<mode>/date=YYYY-MM-DD/hour=HH/price_watch.jsonl

    Returns the full file path as a string. The buffer is emptied once
    written.
    """
    now = datetime.now(timezone.utc)

    partition = (
        LOG_ROOT
        / CURRENT_RUN_MODE
        / f"date={now:%Y-%m-%d}"
        / f"hour={now:%H}"
    )
    partition.mkdir(parents=True, exist_ok=True)

    out_file = partition / "price_watch.jsonl"

    with out_file.open("a", encoding="utf-8") as f:
        for entry in _LOG_BUFFER:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    # written entries must not be appended again by the next export
    _LOG_BUFFER.clear()

    return str(out_file)


def get_logs(context: Optional[str] = None, text: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Search the in-memory buffer.
    """
    out = []
    for ev in _LOG_BUFFER:
        if context and ev["context"] != context:
            continue
        if text and text.lower() not in ev["message"].lower():
            continue
        out.append(ev)
    return out
