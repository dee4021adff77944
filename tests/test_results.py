from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from giftcard_checker.models import Operation, OutcomeRecord, StatusCategory
from giftcard_checker.results import (
    default_results_path,
    format_summary,
    parse_codes,
    read_codes_csv,
    summarize,
    write_results,
)


def _records() -> list[OutcomeRecord]:
    return [
        OutcomeRecord(code="AAAA1111BBBB2222", status=StatusCategory.VALID, amount="88.00", currency="¥", message="Balance: ¥88.00"),
        OutcomeRecord(code="CCCC3333DDDD4444", status=StatusCategory.VALID, amount="1250.50", currency="¥"),
        OutcomeRecord(code="EEEE5555FFFF6666", status=StatusCategory.VALID, amount="25.00", currency="$"),
        OutcomeRecord(code="GGGG7777HHHH8888", status=StatusCategory.ALREADY_REDEEMED, message='Already "redeemed"'),
        OutcomeRecord(code="IIII9999JJJJ0000", status=StatusCategory.TRANSIENT_ERROR, message="navigate: timed out"),
    ]


def test_read_codes_csv_skips_header_and_short_rows(tmp_path: Path) -> None:
    p = tmp_path / "codes.csv"
    p.write_text(
        "\ufeffcode,note\n"
        "X87L-WQ5G-7FW3-VGCW,first\n"
        "\n"
        "short,too short\n"
        "  \"ABCD1234EFGH5678\"  ,quoted\n"
        "12345678,eight chars\n"
        "MNOP5678QRST9012\n",
        encoding="utf-8",
    )
    assert read_codes_csv(p) == ["X87L-WQ5G-7FW3-VGCW", "ABCD1234EFGH5678", "MNOP5678QRST9012"]


def test_parse_codes_keeps_nine_characters_and_up() -> None:
    assert parse_codes(["123456789", "12345678", "", "  "]) == ["123456789"]


def test_summarize_counts_every_status_and_totals_valid_balances() -> None:
    s = summarize(_records())
    assert s.total == 5
    assert s.counts["valid"] == 3
    assert s.counts["alreadyRedeemed"] == 1
    assert s.counts["transientError"] == 1
    assert s.counts["invalid"] == 0
    assert s.totals == {"¥": Decimal("1338.50"), "$": Decimal("25.00")}

    text = format_summary(s, title="Balance lookup summary")
    assert text.splitlines()[0] == "Balance lookup summary"
    assert "balance ¥" in text


def test_default_results_path_by_operation() -> None:
    day = datetime(2026, 3, 4, tzinfo=timezone.utc)
    assert default_results_path("out", Operation.LOOKUP, today=day) == Path("out/balance_results_2026-03-04.json")
    assert default_results_path("out", Operation.REDEEM, today=day) == Path("out/redeem_results_2026-03-04.json")


def test_write_results_json_and_csv(tmp_path: Path) -> None:
    records = _records()
    json_path, csv_path = write_results(
        records, tmp_path / "nested" / "run.json", operation=Operation.LOOKUP, region="cn"
    )
    assert json_path == tmp_path / "nested" / "run.json"
    assert csv_path == tmp_path / "nested" / "run.csv"

    doc = json.loads(json_path.read_text(encoding="utf-8"))
    meta = doc["metadata"]
    assert meta["operation"] == "lookup"
    assert meta["region"] == "cn"
    assert meta["total"] == 5
    assert meta["counts"]["valid"] == 3
    assert [r["code"] for r in doc["results"]] == [r.code for r in records]
    assert doc["results"][0]["amount"] == "88.00"
    assert doc["results"][3]["status"] == "alreadyRedeemed"
    assert "AAAA1111BBBB2222" not in json_path.read_text(encoding="utf-8")

    raw_csv = csv_path.read_text(encoding="utf-8")
    lines = raw_csv.splitlines()
    assert lines[0] == '"code","status","amount","currency","message","timestamp"'
    assert lines[1].startswith('"AAAA-****-****-2222","valid","88.00","¥","Balance: ¥88.00",')

    with csv_path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 5
    assert rows[3]["message"] == 'Already "redeemed"'
    assert rows[3]["amount"] == ""


def test_write_results_forces_json_suffix(tmp_path: Path) -> None:
    json_path, csv_path = write_results([], tmp_path / "out.txt", operation=Operation.REDEEM, region="us")
    assert json_path.name == "out.json"
    assert csv_path.name == "out.csv"
    doc = json.loads(json_path.read_text(encoding="utf-8"))
    assert doc["metadata"]["total"] == 0
    assert doc["results"] == []
