"""Command-line entry for eventmap.

Runs ingestion against a headless map surface and prints the published event
list, either once or repeatedly with ``--watch``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import _init_logging

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the eventmap CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="eventmap",
        description="eventmap - aggregate calendar feeds onto a map",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m eventmap                          # One refresh using ./eventmap.yaml
  python -m eventmap --config feeds.yaml      # Use a specific config file
  python -m eventmap --json                   # Print events as JSON
  python -m eventmap --watch                  # Keep refreshing until Ctrl+C
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: ./eventmap.yaml)")
    parser.add_argument("--env-file", metavar="PATH", help=".env file with EVENTMAP_* defaults")
    parser.add_argument("--json", action="store_true", help="Print events and status as JSON")
    parser.add_argument("--watch", action="store_true", help="Refresh periodically until interrupted")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _print_events(service, as_json: bool) -> None:
    from .logging_config import get_logging_status
    from .presentation import format_event_time, relative_date_label

    events = service.events
    if as_json:
        payload = {
            "events": [event.model_dump(mode="json") for event in events],
            "status": service.status(),
            "logging": get_logging_status(),
        }
        print(json.dumps(payload, indent=2))
        return

    if not events:
        print("No events.")
        return
    for event in events:
        where = (
            f"{event.lat:.4f},{event.lng:.4f}" if event.has_coordinates else "not located"
        )
        print(
            f"{relative_date_label(event.start_time):<12} {format_event_time(event.start_time):>8}  "
            f"{event.name}  @ {event.location_text or 'N/A'} [{where}]"
        )


async def _run(args: argparse.Namespace) -> int:
    from .core.config_manager import ConfigManager
    from .core.http_client import close_all_clients
    from .logging_config import configure_logging
    from .map.memory_surface import InMemoryMapSurface
    from .service import build_service

    manager = ConfigManager(Path(args.env_file) if args.env_file else None)
    config = manager.load_full_config(args.config)
    _init_logging("DEBUG" if args.debug else config.log_level)
    configure_logging(debug_mode=args.debug, level=config.log_level)

    if not config.feeds:
        logger.warning("No feeds configured; only fallback events will be shown")

    surface = InMemoryMapSurface()
    try:
        service = await build_service(config, surface)
        if not args.watch:
            await service.refresh_once()
            _print_events(service, args.json)
            return 0

        stop_event = asyncio.Event()
        loop_task = asyncio.create_task(service.start_refresh_loop(stop_event))
        try:
            last_cycle: Optional[int] = None
            while not loop_task.done():
                await asyncio.sleep(1)
                cycle = service.coordinator.last_cycle_id
                if cycle != last_cycle:
                    last_cycle = cycle
                    _print_events(service, args.json)
        finally:
            stop_event.set()
            await loop_task
        return 0
    finally:
        await close_all_clients()


def main(argv: Optional[list[str]] = None) -> int:
    """Run the eventmap CLI."""
    from .exceptions import ConfigError

    args = _create_parser().parse_args(argv)
    _init_logging("DEBUG" if args.debug else "INFO")

    try:
        return asyncio.run(_run(args))
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
