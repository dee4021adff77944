from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from .models import Operation, OutcomeRecord, StatusCategory
from .util.money import amount_to_decimal


logger = logging.getLogger(__name__)

# Codes this short are header remnants or typos, not gift card codes.
MIN_CODE_LENGTH = 9

CSV_FIELDS = ("code", "status", "amount", "currency", "message", "timestamp")


def clean_code(raw: str) -> str:
    return (raw or "").strip().strip('"').strip("'").strip()


def parse_codes(values: Iterable[str]) -> list[str]:
    """Normalize raw tokens, dropping blanks and anything shorter than MIN_CODE_LENGTH."""
    out: list[str] = []
    for raw in values:
        code = clean_code(raw)
        if len(code) < MIN_CODE_LENGTH:
            continue
        out.append(code)
    return out


def read_codes_csv(path: Union[str, Path]) -> list[str]:
    """
    Read codes from a delimited file: the first line is a header, the first column is the code.

    Malformed or short rows are dropped silently; order is preserved.
    """
    p = Path(path)
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        rows = list(csv.reader(f))
    return parse_codes(row[0] for row in rows[1:] if row)


@dataclass
class BatchSummary:
    total: int = 0
    counts: dict[str, int] = field(default_factory=dict)
    # Sum of valid balances per currency symbol.
    totals: dict[str, Decimal] = field(default_factory=dict)


def summarize(records: Sequence[OutcomeRecord]) -> BatchSummary:
    summary = BatchSummary(total=len(records), counts={s.value: 0 for s in StatusCategory})
    for r in records:
        summary.counts[r.status.value] += 1
        if r.status is StatusCategory.VALID and r.currency:
            amount = amount_to_decimal(r.amount)
            if amount is not None:
                summary.totals[r.currency] = summary.totals.get(r.currency, Decimal("0")) + amount
    return summary


def default_results_path(out_dir: str, operation: Operation, *, today: Optional[datetime] = None) -> Path:
    stamp = (today or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    name = "balance" if operation is Operation.LOOKUP else "redeem"
    return Path(out_dir) / f"{name}_results_{stamp}.json"


def write_results(
    records: Sequence[OutcomeRecord],
    path: Union[str, Path],
    *,
    operation: Operation,
    region: str,
) -> tuple[Path, Path]:
    """
    Write `<path>` (JSON: metadata + ordered results) and a companion `.csv` with every field quoted.
    """
    json_path = Path(path)
    if json_path.suffix.lower() != ".json":
        json_path = json_path.with_suffix(".json")
    csv_path = json_path.with_suffix(".csv")
    json_path.parent.mkdir(parents=True, exist_ok=True)

    summary = summarize(records)
    doc = {
        "metadata": {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "operation": operation.value,
            "region": region,
            "total": summary.total,
            "counts": summary.counts,
        },
        "results": [r.model_dump(mode="json") for r in records],
    }
    json_path.write_text(json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8")

    with csv_path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_FIELDS)
        for r in records:
            writer.writerow(
                [
                    r.code,
                    r.status.value,
                    r.amount or "",
                    r.currency or "",
                    r.message or "",
                    r.timestamp.isoformat(),
                ]
            )

    logger.info("Results saved: %s, %s", json_path, csv_path)
    return json_path, csv_path


def format_summary(summary: BatchSummary, *, title: str = "Batch summary") -> str:
    lines = [title, "-" * 40, f"{'total':<18}{summary.total}"]
    for status, count in summary.counts.items():
        lines.append(f"{status:<18}{count}")
    for currency, amount in sorted(summary.totals.items()):
        lines.append(f"{'balance ' + currency:<18}{amount}")
    return "\n".join(lines)
