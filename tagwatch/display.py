"""
Terminal display of tracked FindMy devices.

Consumes published snapshots and redraws a rich table each time one
arrives. Only changed snapshots are published, so the screen is redrawn
only when something actually changed.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import timedelta
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich import box

from .bluetooth.constants import (
    LOOP_POLL_INTERVAL,
    SCREEN_IDLE_TIMEOUT,
    SCREEN_ROW_BUFFER,
)
from .bluetooth.models import DeviceView, Snapshot

logger = logging.getLogger('tagwatch.display')

HEADER = (
    'Device',
    'Company',
    'Manufacturer Data',
    'AirTag',
    'Registered',
    'First Seen',
    'Last Seen',
    'Detected For',
    'Seen',
    'Seen %',
)

Row = tuple[str, ...]


def format_manufacturer_data(device: DeviceView) -> str:
    """Render the payload after the type/length header as '[DE AD]: 2'."""
    if device.manufacturer_data is None:
        return 'None'
    body = device.manufacturer_data[2:]
    return f"[{' '.join(f'{b:02X}' for b in body)}]: {len(body)}"


def format_duration(duration: timedelta) -> str:
    """Format a duration as e.g. '1h02m03s', '9m00s' or '5s'."""
    total = max(0, int(round(duration.total_seconds())))
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f'{hours}h{minutes:02d}m{seconds:02d}s'
    if minutes:
        return f'{minutes}m{seconds:02d}s'
    return f'{seconds}s'


def seen_percentage(times_seen: int, scan_count: int) -> str:
    """Sightings per completed scan window, as a percentage."""
    if scan_count <= 0:
        return '0%'
    return f'{times_seen * 100 // scan_count}%'


def device_row(device: DeviceView, scan_count: int) -> Row:
    """Build one table row for a device."""
    return (
        device.address,
        device.company_name,
        format_manufacturer_data(device),
        '*' if device.is_airtag else '',
        '*' if device.is_registered else '',
        device.first_seen.strftime('%H:%M:%S'),
        device.last_seen.strftime('%H:%M:%S'),
        format_duration(device.duration),
        str(device.times_seen),
        seen_percentage(device.times_seen, scan_count),
    )


def prepare_rows(snapshot: Snapshot, term_height: int, row_buffer: int = SCREEN_ROW_BUFFER) -> list[Row]:
    """Build the rows that fit on a terminal of the given height."""
    limit = max(0, term_height - row_buffer)
    return [device_row(d, snapshot.scan_count) for d in snapshot.devices[:limit]]


class ScreenWriter:
    """
    Renders snapshots from a queue to the terminal on a background thread.

    Args:
        snapshots: Queue the snapshot publisher writes to.
        stop_event: Shared cancellation signal; a private one when None.
        console: rich Console to draw on.
        row_buffer: Terminal rows kept free for borders and headers.
        idle_timeout: Seconds without a snapshot before an idle log line.
    """

    def __init__(
        self,
        snapshots: queue.Queue,
        stop_event: Optional[threading.Event] = None,
        console: Optional[Console] = None,
        row_buffer: int = SCREEN_ROW_BUFFER,
        idle_timeout: float = SCREEN_IDLE_TIMEOUT,
    ):
        self._snapshots = snapshots
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._console = console or Console()
        self._row_buffer = row_buffer
        self._idle_timeout = idle_timeout
        self._thread: Optional[threading.Thread] = None
        self._written_count = 0

    @property
    def written_count(self) -> int:
        """Number of snapshots drawn."""
        return self._written_count

    def start(self) -> None:
        """Start drawing on a background thread."""
        self._thread = threading.Thread(target=self.run, daemon=True, name='tagwatch-display')
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run(self) -> None:
        """Draw snapshots until the stop signal is set."""
        last_write = time.monotonic()
        while not self._stop_event.is_set():
            try:
                snapshot = self._snapshots.get(timeout=LOOP_POLL_INTERVAL)
            except queue.Empty:
                if time.monotonic() - last_write >= self._idle_timeout:
                    logger.debug("No snapshot received in time")
                    last_write = time.monotonic()
                continue
            self.write(snapshot)
            last_write = time.monotonic()

    def render(self, snapshot: Snapshot, term_height: Optional[int] = None) -> Table:
        """Build the rich table for a snapshot."""
        if term_height is None:
            term_height = self._console.size.height

        table = Table(
            title=f"{len(snapshot)} FindMy devices | scan {snapshot.scan_count}",
            box=box.ROUNDED,
        )
        for column in HEADER:
            table.add_column(column)
        for row in prepare_rows(snapshot, term_height, self._row_buffer):
            table.add_row(*row)
        return table

    def write(self, snapshot: Snapshot) -> None:
        """Clear the screen and draw a snapshot."""
        table = self.render(snapshot)
        self._console.clear()
        self._console.print(table)
        self._written_count += 1
