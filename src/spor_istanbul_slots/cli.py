from __future__ import annotations

import argparse
import json
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import load_config
from .errors import ConfigurationError, PortalError
from .logging_config import configure_logging
from .portal.client import GymPortalClient
from .portal.extraction import extract_from_html
from .report import report_appointments
from .run_context import RunContext
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("spor_istanbul_slots")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="spor_istanbul_slots")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    check = sub.add_parser(
        "check",
        help="Log into online.spor.istanbul and list sessions with remaining quota",
    )
    check.add_argument("--config", default="config.yaml", help="Path to optional YAML config (default: config.yaml)")
    check.add_argument(
        "--backend",
        choices=("playwright", "selenium"),
        default=None,
        help="Browser automation backend (default: browser.backend from config, i.e. playwright).",
    )
    check.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    check.add_argument(
        "--settle-mode",
        choices=("delay", "poll"),
        default=None,
        help="After the session-selection postback: sleep a fixed delay, or poll for session cards.",
    )
    check.add_argument(
        "--settle-delay-ms",
        type=int,
        default=None,
        help="Settle bound in milliseconds for the session selection page.",
    )
    check.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")
    check.add_argument(
        "--bundle",
        action="store_true",
        help="On failure, zip the run directory (log, screenshots, HTML) into a debug bundle.",
    )

    snap = sub.add_parser(
        "parse-snapshot",
        help="Parse a saved session selection page (e.g. logs/<run>/results_page.html) offline. No browser.",
    )
    snap.add_argument("--file", required=True, help="Path to the saved HTML file")
    snap.add_argument("--json", action="store_true", help="Print records as JSON instead of the text report")

    return p


def _apply_overrides(cfg, args: argparse.Namespace):
    browser_updates: dict = {}
    if args.backend:
        browser_updates["backend"] = args.backend
    if args.headful:
        browser_updates["headless"] = False
    if args.settle_mode:
        browser_updates["settle_mode"] = args.settle_mode
    if args.settle_delay_ms is not None:
        browser_updates["settle_delay_ms"] = max(0, int(args.settle_delay_ms))
    if args.slowmo_ms:
        browser_updates["slow_mo_ms"] = int(args.slowmo_ms)
    if not browser_updates:
        return cfg
    return cfg.model_copy(update={"browser": cfg.browser.model_copy(update=browser_updates)})


def _run_check(args: argparse.Namespace) -> int:
    try:
        cfg = _apply_overrides(load_config(args.config), args)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2

    run = RunContext.create(cfg.logging.log_root)
    configure_logging(level=cfg.logging.level, file_path=str(run.log_file), run_id=run.run_dir.name)
    logger.info("Starting availability check (backend=%s, run_dir=%s)", cfg.browser.backend, run.run_dir)

    client = GymPortalClient(cfg)
    t0 = time.time()
    try:
        records = client.check_availability(run=run)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return 130
    except PortalError as e:
        logger.error(
            "Availability check failed (state=%s): %s",
            client.last_state.value,
            client.last_failure_reason or e,
        )
        _maybe_bundle(args, run)
        return 1
    except Exception:
        logger.exception("Availability check failed unexpectedly (state=%s)", client.last_state.value)
        _maybe_bundle(args, run)
        return 1

    report_appointments(records)
    logger.info("Done in %.1fs", time.time() - t0)
    return 0


def _maybe_bundle(args: argparse.Namespace, run: RunContext) -> None:
    if not args.bundle:
        return
    try:
        out_zip = create_debug_bundle(run_dir=str(run.run_dir), out_dir=str(run.run_dir.parent))
        logger.info("Debug bundle written: %s", out_zip)
    except Exception:
        logger.warning("Failed to write debug bundle.", exc_info=True)


def _run_parse_snapshot(args: argparse.Namespace) -> int:
    p = Path(args.file)
    if not p.exists():
        logger.error("File not found: %s", p)
        return 2

    records = extract_from_html(p.read_text(encoding="utf-8", errors="replace"))
    if args.json:
        print(json.dumps([r.model_dump() for r in records], ensure_ascii=False, indent=2))
    else:
        report_appointments(records)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: the check command reconfigures it once the run directory exists.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "check":
        return _run_check(args)

    if args.cmd == "parse-snapshot":
        return _run_parse_snapshot(args)

    raise AssertionError("Unhandled command")
