"""Command-line entry point for the slot matcher service."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import structlog
import uvicorn

from voice_common.observability import configure_logging
from voice_common.timeutils import DEFAULT_TIMEZONE

from .api import build_store, timeslots_response
from .config import Settings
from .matcher import SlotMatcher
from .models import SchedulingPreference, TimeRange
from .store import StoreError

LOGGER = structlog.get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Match caller preferences against open appointment slots.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the webhook API with uvicorn.")
    serve.add_argument("--host", help="Bind address (defaults to settings).")
    serve.add_argument("--port", type=int, help="Bind port (defaults to settings).")

    match = commands.add_parser("match", help="Rank slots once and print the webhook JSON.")
    match.add_argument("state", help="State name or abbreviation.")
    match.add_argument("--date", help="Preferred date, YYYY-MM-DD.")
    match.add_argument("--time", help="Preferred time, HH:mm.")
    match.add_argument("--range", nargs=2, metavar=("START", "END"), help="Preferred window, HH:mm HH:mm.")
    match.add_argument("--timezone", default=DEFAULT_TIMEZONE)
    match.add_argument("--limit", type=int, help="Maximum number of slots (defaults to settings).")
    return parser.parse_args(argv)


async def run_match(settings: Settings, args: argparse.Namespace) -> dict:
    matcher = SlotMatcher(
        build_store(settings),
        collection=settings.slots_collection,
        fallback_page_size=settings.fallback_page_size,
    )
    preferences = SchedulingPreference(
        date=args.date,
        time=args.time,
        time_range=TimeRange(*args.range) if args.range else None,
        timezone=args.timezone,
    )
    best = await matcher.find_best_slots(args.state, None, preferences, args.limit or settings.max_results)
    return timeslots_response(best, args.timezone)


def cli(argv: Optional[List[str]] = None) -> int:
    """Console script entrypoint."""
    args = parse_args(argv)

    try:
        settings = Settings()
    except Exception as exc:  # pragma: no cover - startup validation
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    configure_logging(logging.getLevelName(settings.log_level.upper()))

    if args.command == "serve":
        uvicorn.run(
            "slot_matcher.api:create_app",
            factory=True,
            host=args.host or settings.host,
            port=args.port or settings.port,
            log_level=settings.log_level.lower(),
        )
        return 0

    try:
        response = asyncio.run(run_match(settings, args))
    except StoreError as exc:
        LOGGER.error("cli.store_failed", error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(response, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
