#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def main(argv: list[str] | None = None) -> int:
    _ensure_src_on_path()

    from giftcard_checker.classify import classify_balance, classify_redemption
    from giftcard_checker.config import load_config

    p = argparse.ArgumentParser(
        prog="classify_snapshot",
        description=(
            "Classify debug snapshots saved under data/debug/ (<prefix>.txt and optional <prefix>.html).\n"
            "Useful for checking pattern changes offline (no Playwright, no codes)."
        ),
    )
    p.add_argument("kind", choices=("lookup", "redeem"), help="Which classifier to run")
    p.add_argument("--text", required=True, help="Path to a saved body-text snapshot (.txt)")
    p.add_argument("--html", default="", help="Optional saved markup snapshot (.html)")
    p.add_argument("--region", default="", help="Store region slug (default: from config/env)")
    p.add_argument("--config", default="config.yaml", help="YAML config with optional pattern overrides")
    p.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")
    args = p.parse_args(argv)

    cfg = load_config(args.config)
    region = (args.region or cfg.checker.region).strip().lower()
    patterns = cfg.patterns.to_pattern_set()

    text = _read_text(args.text)
    html = _read_text(args.html) if args.html else ""

    if args.kind == "lookup":
        result = classify_balance(text, html, region=region, patterns=patterns)
    else:
        result = classify_redemption(text, html, region=region, patterns=patterns)

    payload = {"kind": args.kind, "region": region, "classification": asdict(result)}
    out_json = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    if args.out:
        Path(args.out).write_text(out_json, encoding="utf-8")
    else:
        print(out_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
