from __future__ import annotations

import argparse
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, CheckerConfig, load_config
from .logging_config import configure_logging
from .models import Operation, OutcomeRecord
from .portal.client import AppleIdCredentials, GiftCardPortalClient
from .portal.session import browser_session
from .regions import KNOWN_REGIONS, is_known_region
from .results import default_results_path, format_summary, parse_codes, read_codes_csv, summarize, write_results
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("giftcard_checker")


def _add_run_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    p.add_argument("--csv", default="", help="CSV file of codes (header row, code in the first column)")
    p.add_argument(
        "--code",
        action="append",
        default=[],
        help="A gift card code to process (repeatable). Combined with --csv if both are given.",
    )
    p.add_argument("--region", default="", help="Store region slug (overrides CHECKER_REGION / config)")
    p.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    p.add_argument(
        "--out",
        default="",
        help="Results JSON path; a .csv is written next to it (default: data/results/<op>_results_<date>.json)",
    )
    p.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")
    p.add_argument(
        "--step-debug",
        action="store_true",
        help="Log every step and save step screenshots under the debug dir (inputs are masked).",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="giftcard_checker")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    check = sub.add_parser("check", help="Look up gift card balances on the store's balance page")
    _add_run_options(check)

    redeem = sub.add_parser("redeem", help="Redeem gift cards into the configured Apple ID")
    _add_run_options(redeem)
    redeem.add_argument(
        "--manual-2fa",
        action="store_true",
        help="If Apple asks for two-factor authentication, wait while you complete it in the browser (requires --headful).",
    )

    sub.add_parser("list-regions", help="List store regions with known balance-page formats")
    return p


def _apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    updates: dict = {}
    if args.region:
        updates["region"] = args.region
    if args.headful:
        updates["headless"] = False
    if not updates:
        return cfg
    checker = CheckerConfig.model_validate({**cfg.checker.model_dump(), **updates})
    return cfg.model_copy(update={"checker": checker})


def _collect_codes(args: argparse.Namespace) -> list[str]:
    codes: list[str] = []
    if args.csv:
        csv_path = Path(args.csv)
        if not csv_path.exists():
            raise SystemExit(f"File not found: {csv_path}")
        try:
            codes.extend(read_codes_csv(csv_path))
        except UnicodeDecodeError:
            raise SystemExit(
                f"Could not read {csv_path}: the file is not UTF-8 text. Re-save it as UTF-8 CSV."
            ) from None
    codes.extend(parse_codes(args.code or []))
    return codes


def _run(cfg: AppConfig, args: argparse.Namespace, *, operation: Operation) -> int:
    region = cfg.checker.region
    codes = _collect_codes(args)
    if not codes:
        raise SystemExit("No gift card codes to process. Pass --csv FILE and/or --code CODE.")

    creds: Optional[AppleIdCredentials] = None
    manual_2fa = bool(getattr(args, "manual_2fa", False))
    if operation is Operation.REDEEM:
        if not cfg.account.has_credentials():
            raise SystemExit("Missing Apple ID credentials. Set APPLE_ID and APPLE_ID_PASSWORD in your .env.")
        if manual_2fa and cfg.checker.headless:
            raise SystemExit("--manual-2fa requires --headful (you must be able to interact with the browser).")
        creds = AppleIdCredentials(apple_id=cfg.account.apple_id, password=cfg.account.password)

    if not is_known_region(region):
        logger.warning(
            "Unknown region=%r. The balance URL is built from the slug; amount patterns use the default order.",
            region,
        )

    client = GiftCardPortalClient(
        config=cfg.checker,
        patterns=cfg.patterns.to_pattern_set(),
        debug_dir=cfg.output.debug_dir,
        step_debug=args.step_debug,
        manual_2fa=manual_2fa,
    )

    t0 = time.time()
    logger.info("Starting %s of %d code(s) (region=%s)", operation.value, len(codes), region)
    try:
        with browser_session(
            headless=cfg.checker.headless,
            slow_mo_ms=args.slowmo_ms,
            user_agent=cfg.checker.user_agent,
            storage_state_path=cfg.output.storage_state_path if operation is Operation.REDEEM else None,
        ) as session:
            records: list[OutcomeRecord]
            if creds is not None:
                records = client.redeem_batch(session, codes, creds)
            else:
                records = client.check_batch(session, codes)
    except Exception:
        logger.error("Run failed (seconds=%.2f)", time.time() - t0)
        # Auto-bundle debug artifacts + log for easy sharing.
        try:
            bundle = create_debug_bundle(
                debug_dir=cfg.output.debug_dir,
                log_file=cfg.logging.file_path or "data/checker.log",
                out_dir="data",
                region=region,
            )
            logger.error("Wrote debug bundle: %s", bundle)
        except Exception:
            logger.debug("Failed to create debug bundle.", exc_info=True)
        raise

    out_path = args.out or str(default_results_path(cfg.output.dir, operation))
    json_path, csv_path = write_results(records, out_path, operation=operation, region=region)
    logger.info("Run finished (codes=%d seconds=%.2f)", len(records), time.time() - t0)

    title = "Balance lookup summary" if operation is Operation.LOOKUP else "Redemption summary"
    print(format_summary(summarize(records), title=title))
    print()
    print(f"Results: {json_path}")
    print(f"CSV:     {csv_path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "list-regions":
        # Print only; no config/env required.
        for slug in sorted(KNOWN_REGIONS.keys()):
            info = KNOWN_REGIONS[slug]
            print(f"{info.slug}\t{info.currency}\t{info.display_name}")
        return 0

    if args.cmd in ("check", "redeem"):
        cfg = _apply_overrides(load_config(args.config), args)
        configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)
        operation = Operation.LOOKUP if args.cmd == "check" else Operation.REDEEM
        return _run(cfg, args, operation=operation)

    raise AssertionError("Unhandled command")
