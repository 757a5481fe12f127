#!/usr/bin/env python3
"""
Standalone TV Scanner
Runs independently from the web server and prints the TVs it finds

Usage:
    python3 -m tvremote.services.standalone_network_scanner --prefix 192.168.1 --start 1 --end 254
    python3 -m tvremote.services.standalone_network_scanner --host 192.168.1.77
    python3 -m tvremote.services.standalone_network_scanner --json  # One JSON object per line
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from ..core.config import settings
from .network_scanner import HOST_RANGE_MAX, HOST_RANGE_MIN, NetworkScanner, ScanOptions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Standalone TV Scanner - Finds network-controllable TVs on the LAN'
    )
    parser.add_argument(
        '--prefix',
        action='append',
        dest='prefixes',
        help='Subnet prefix to scan (first 3 octets, e.g., 192.168.1). Repeatable'
    )
    parser.add_argument(
        '--no-ranges',
        action='store_true',
        help='Only scan the hosts given with --host'
    )
    parser.add_argument(
        '--host',
        action='append',
        dest='hosts',
        help='Explicit IPv4 host to probe thoroughly. Repeatable'
    )
    parser.add_argument(
        '--start',
        type=int,
        default=HOST_RANGE_MIN,
        help='Start IP (4th octet)'
    )
    parser.add_argument(
        '--end',
        type=int,
        default=HOST_RANGE_MAX,
        help='End IP (4th octet)'
    )
    parser.add_argument(
        '--concurrency',
        type=int,
        default=settings.SCAN_MAX_CONCURRENCY,
        help='Hosts probed at the same time'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print each device as a JSON line instead of a table'
    )
    return parser


def options_from_args(args: argparse.Namespace, cancel_event: Optional[asyncio.Event] = None) -> ScanOptions:
    return ScanOptions(
        prefixes=[] if args.no_ranges else args.prefixes,
        hosts=args.hosts,
        host_range_start=args.start,
        host_range_end=args.end,
        max_concurrency=args.concurrency,
        cancel_event=cancel_event,
    )


async def perform_scan(args: argparse.Namespace, scanner: Optional[NetworkScanner] = None) -> int:
    """Run one scan and print results, returning the number of devices found"""
    scanner = scanner or NetworkScanner()
    cancel_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    handles_sigint = True
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError, ValueError):
        handles_sigint = False
        logger.debug("SIGINT handler unavailable, Ctrl+C will abort the scan")

    found = 0
    try:
        async for device in scanner.scan(options_from_args(args, cancel_event)):
            found += 1
            if args.json:
                print(device.model_dump_json(), flush=True)
            else:
                print(
                    f"  {device.host:15} | {device.port:5} | {device.brand.value:9} | "
                    f"{device.source.value:10} | {device.nickname}",
                    flush=True
                )
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    if cancel_event.is_set():
        logger.info("Scan stopped by user")
    return found


def run(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    found = asyncio.run(perform_scan(args))

    # Exit code based on results
    sys.exit(0 if found else 1)


if __name__ == '__main__':
    run()
