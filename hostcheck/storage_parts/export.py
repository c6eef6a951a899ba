from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .db import RESULT_COLUMNS

EXPORT_FORMATS = ("json", "csv")


def _iso_from_ms(value: Any) -> str:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).isoformat(timespec="seconds")
    except (TypeError, ValueError, OverflowError, OSError):
        return ""


def _rows_for_export(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for item in results:
        row = {col: item.get(col) for col in RESULT_COLUMNS}
        row["authoritative_nameservers"] = list(item.get("authoritative_nameservers") or [])
        row["updated_at_iso"] = _iso_from_ms(item.get("updated_at"))
        rows.append(row)
    return rows


def export_results(results: List[Dict[str, Any]], export_format: str, output_path: Optional[str] = None) -> str:
    """Write stored host results to disk as JSON or CSV and return the path."""
    export_format = (export_format or "").strip().lower()
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format!r} (use json or csv)")

    if output_path:
        out = Path(output_path)
    else:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        out = Path.cwd() / f"hostcheck_results_{stamp}.{export_format}"

    if out.exists() and out.is_dir():
        raise IsADirectoryError(f"Output path is a directory: {out}")

    out.parent.mkdir(parents=True, exist_ok=True)
    rows = _rows_for_export(results)

    if export_format == "json":
        out.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")
        return str(out)

    fieldnames = list(RESULT_COLUMNS) + ["updated_at_iso"]
    with out.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            flat = dict(row)
            flat["authoritative_nameservers"] = ", ".join(row["authoritative_nameservers"])
            writer.writerow(flat)
    return str(out)
