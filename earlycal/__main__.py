"""Command-line entry for earlycal.

Runs a one-shot early-event check and prints the JSON result, or starts the
HTTP server with ``--serve``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from typing import Optional, Sequence

from . import run_server
from .config import CalendarConfig, load_config
from .early_event import find_early_event
from .logging_config import configure_logging
from .timezone_utils import validate_timezone


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the earlycal CLI."""
    parser = argparse.ArgumentParser(
        prog="earlycal",
        description="Report the earliest calendar event before 9 AM on a given day",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m earlycal --url https://example.com/cal.ics        # check tomorrow
  python -m earlycal --date 20260225 --timezone Europe/London  # check a given day
  python -m earlycal --serve --port 3000                       # run the HTTP API
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: $EARLYCAL_CONFIG or ./earlycal.yaml)")
    parser.add_argument("--url", metavar="URL", help="ICS feed URL (overrides config)")
    parser.add_argument("--timezone", metavar="TZ", help="IANA timezone (overrides config)")
    parser.add_argument("--date", metavar="YYYYMMDD", help="Day to check (default: tomorrow)")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server instead of a one-shot check")
    parser.add_argument("--port", type=int, metavar="PORT", help="Port for --serve")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _apply_overrides(config: CalendarConfig, args: argparse.Namespace) -> CalendarConfig:
    changes = {}
    if args.url:
        changes["calendar_ical_url"] = args.url
    if args.timezone:
        changes["timezone"] = validate_timezone(args.timezone)
    if args.debug:
        changes["log_level"] = "DEBUG"
    return replace(config, **changes) if changes else config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the earlycal CLI and return the process exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.date is not None and not (len(args.date) == 8 and args.date.isdigit()):
        parser.error("--date must be YYYYMMDD")

    config = _apply_overrides(load_config(args.config), args)

    if args.serve:
        run_server(config, port=args.port)
        return 0

    configure_logging(debug_mode=args.debug, level_name=config.log_level)

    result = asyncio.run(find_early_event(config, args.date))
    print(json.dumps(result.to_response(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
