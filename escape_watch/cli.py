from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from .config import AppConfig, load_resources
from .exceptions import ConfigError
from .models import ScanResult
from .notifiers import build_notifiers
from .orchestrator import ScanOrchestrator
from .pacing import RateLimiter
from .page import PlaywrightSession
from .reporter import Reporter
from .scanner import ResourceScanner


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check escape room booking calendars for open slots",
    )
    parser.add_argument(
        "--rooms",
        type=Path,
        help="JSON file listing the rooms to watch (overrides ROOMS_FILE)",
    )
    parser.add_argument(
        "--days-ahead",
        type=int,
        help="Number of days after today to check (overrides DAYS_AHEAD)",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Force browser into headful mode regardless of HEADLESS setting",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Skip sending notifications (useful for dry runs)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level configured via environment",
    )
    return parser.parse_args(argv)


def setup_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def run_check(config: AppConfig, no_notify: bool = False) -> List[ScanResult]:
    resources = load_resources(config.rooms_file)
    logging.info("Starting availability check for %d rooms", len(resources))

    limiter = RateLimiter(config.scan.global_min_request_interval_ms)
    scanner = ResourceScanner(limiter, config.scan)
    orchestrator = ScanOrchestrator(
        scanner,
        lambda: PlaywrightSession(headless=config.headless),
        config.scan,
    )
    results = await orchestrator.run_all(resources)

    notifiers = [] if no_notify else build_notifiers(config)
    if no_notify:
        logging.warning("Notifications disabled via CLI flag; results will log only")
    await Reporter(notifiers).report(results)
    logging.info("Availability check complete")
    return results


async def main_async(args: argparse.Namespace) -> int:
    config = AppConfig.load()
    if args.log_level:
        config.log_level = args.log_level
    if args.headful:
        config.headless = False
    if args.rooms:
        config.rooms_file = args.rooms
    if args.days_ahead is not None:
        config.scan.days_ahead = max(args.days_ahead, 0)

    setup_logging(config.log_level)

    try:
        await run_check(config, no_notify=args.no_notify)
    except ConfigError as exc:
        logging.error("Cannot start check: %s", exc)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        status = asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logging.info("Received interrupt signal. Exiting.")
        return
    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
