"""Command-line entry point for the normalizer service."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import structlog
import uvicorn

from voice_common.observability import configure_logging
from voice_common.timeutils import InvalidTimezoneError

from .config import Settings
from .dob_normalizer import VALIDATION_LEVELS, normalize_dob
from .time_normalizer import parse_natural_time

LOGGER = structlog.get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Normalize spoken dates, times and dates of birth.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", help="Bind address (defaults to settings).")
    serve.add_argument("--port", type=int, help="Bind port (defaults to settings).")

    time_cmd = commands.add_parser("time", help="Normalize one appointment time phrase and print JSON.")
    time_cmd.add_argument("text")
    time_cmd.add_argument("--timezone", help="IANA timezone (defaults to settings).")

    dob_cmd = commands.add_parser("dob", help="Normalize one date of birth and print JSON.")
    dob_cmd.add_argument("text")
    dob_cmd.add_argument("--level", choices=VALIDATION_LEVELS, help="Validation level (defaults to settings).")
    return parser.parse_args(argv)


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
            "voice_normalizer.api:create_app",
            factory=True,
            host=args.host or settings.host,
            port=args.port or settings.port,
            log_level=settings.log_level.lower(),
        )
        return 0

    if args.command == "time":
        try:
            result = parse_natural_time(args.text, args.timezone or settings.default_timezone)
        except InvalidTimezoneError as exc:
            LOGGER.error("cli.invalid_timezone", error=str(exc))
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    result = normalize_dob(args.text, validation_level=args.level or settings.dob_validation_level)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
