"""Command-line entry point for tagwatch."""

from __future__ import annotations

import argparse
import queue
import signal
import sys
import threading
from typing import Optional, Sequence

from .bluetooth.company_ids import load_company_identifiers
from .bluetooth.constants import SNAPSHOT_TRIGGER_INTERVAL, SNAPSHOT_TRIGGER_SCAN_WINDOW
from .bluetooth.tracker import TrackingLoop
from .config import AppConfig, load_config, validate_config
from .display import ScreenWriter
from .errors import TagwatchError
from .log import configure_logging, get_logger

logger = get_logger('cli')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tagwatch',
        description='Watch for Apple FindMy / AirTag devices that stay near you.',
    )
    parser.add_argument('-c', '--config', help='YAML configuration file')
    parser.add_argument('--company-ids', help='Bluetooth SIG company identifiers YAML file')
    parser.add_argument(
        '--trigger',
        choices=[SNAPSHOT_TRIGGER_INTERVAL, SNAPSHOT_TRIGGER_SCAN_WINDOW],
        help='What causes the device table to refresh',
    )
    parser.add_argument('--oldest-device', type=float, metavar='SECONDS',
                        help='Forget devices not seen for this long')
    parser.add_argument('--log-level', help='Log level (DEBUG, INFO, WARNING, ...)')
    parser.add_argument('--log-file', help='Write logs to this file instead of stderr')
    parser.add_argument('--no-display', action='store_true', help='Do not draw the device table')
    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Apply command-line values on top of the loaded configuration."""
    if args.company_ids:
        config.display.company_identifiers = args.company_ids
    if args.trigger:
        config.tracking.snapshot_trigger = args.trigger
    if args.oldest_device is not None:
        config.tracking.oldest_device = args.oldest_device
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_file:
        config.logging.file = args.log_file
    if args.no_display:
        config.display.enabled = False
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), args)
    except TagwatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    errors = validate_config(config)
    if errors:
        for error in errors:
            print(f"Config error: {error}", file=sys.stderr)
        return 2

    configure_logging(config.logging.level, config.logging.file)

    stop_event = threading.Event()
    snapshots: queue.Queue = queue.Queue(maxsize=1)

    try:
        company_ids = load_company_identifiers(config.display.company_identifiers)
        tracker = TrackingLoop.from_config(config, company_ids, snapshots, stop_event=stop_event)
        tracker.start()
    except TagwatchError as e:
        logger.error(f"Startup failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    writer: Optional[ScreenWriter] = None
    if config.display.enabled:
        writer = ScreenWriter(snapshots, stop_event=stop_event, row_buffer=config.display.row_buffer)
        writer.start()

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, stopping")
        stop_event.set()

    previous = {sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        # Short waits keep the main thread responsive to signals
        while not tracker.wait(timeout=0.5):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        if writer is not None:
            writer.stop()

    if tracker.stop_reason == 'error':
        logger.error("Tracking stopped after a scan failure")
        print("Error: tracking stopped after a scan failure, see the log for details", file=sys.stderr)
        return 1
    return 0
