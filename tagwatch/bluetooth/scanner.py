"""
Duty-cycled BLE scan source.

Runs bleak's BleakScanner on a dedicated thread and event loop. The radio is
scanned in fixed windows separated by rest periods; every advertisement seen
during a window is handed to the tracking loop through a bounded queue,
followed by a ScanWindowComplete marker when the window closes.

The scanner never touches the device registry. The queue is the only hand-off.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
import time
from typing import Any, Callable, Optional

from bleak import BleakScanner
from bleak.exc import BleakError

from ..errors import AdapterUnavailableError
from .constants import (
    ADAPTER_PROBE_TIMEOUT,
    DEFAULT_SCAN_LENGTH,
    DEFAULT_SCAN_RATE,
    SCAN_QUEUE_PUT_TIMEOUT,
    SCANNER_STOP_TIMEOUT,
)
from .models import Advertisement, ScanStopped, ScanWindowComplete

logger = logging.getLogger('tagwatch.bluetooth.scanner')

# Granularity at which an active window checks the stop signal
_STOP_CHECK_INTERVAL = 0.05

# Log every Nth dropped advertisement while the queue stays full
_DROP_LOG_EVERY = 100

# Adapter failures: fatal for the startup probe, retried for later scan windows
_ADAPTER_ERRORS = (BleakError, OSError, asyncio.TimeoutError)

ScannerFactory = Callable[..., Any]


class ScanSource:
    """
    Producer of advertisements from the Bluetooth adapter.

    Args:
        output: Bounded queue shared with the tracking loop.
        scan_rate: Rest before each scan window (seconds).
        scan_length: Length of each scan window (seconds).
        stop_event: Shared cancellation signal; a private one when None.
        scanner_factory: Callable returning a bleak-compatible scanner.
        put_timeout: Longest wait per attempt when a control marker meets a full queue (seconds).
    """

    def __init__(
        self,
        output: queue.Queue,
        scan_rate: float = DEFAULT_SCAN_RATE,
        scan_length: float = DEFAULT_SCAN_LENGTH,
        stop_event: Optional[threading.Event] = None,
        scanner_factory: Optional[ScannerFactory] = None,
        put_timeout: float = SCAN_QUEUE_PUT_TIMEOUT,
    ):
        self._output = output
        self._scan_rate = scan_rate
        self._scan_length = scan_length
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._scanner_factory = scanner_factory or BleakScanner
        self._put_timeout = put_timeout
        self._thread: Optional[threading.Thread] = None
        self._scan_count = 0
        self._dropped_count = 0
        self._error_count = 0
        self._exit_reason: Optional[str] = None

    @property
    def scan_count(self) -> int:
        """Number of completed scan windows."""
        return self._scan_count

    @property
    def dropped_count(self) -> int:
        """Advertisements dropped because the queue stayed full."""
        return self._dropped_count

    @property
    def error_count(self) -> int:
        """Scan windows that failed with an adapter error."""
        return self._error_count

    @property
    def is_running(self) -> bool:
        """Whether the scan thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def exit_reason(self) -> Optional[str]:
        """Why the duty cycle ended ('stopped' or 'error'); None while it has not."""
        return self._exit_reason

    def check_adapter(self) -> None:
        """
        Verify the adapter can scan by running one short probe window.

        Raises:
            AdapterUnavailableError: If scanning cannot be started.
        """
        try:
            asyncio.run(self._probe())
        except _ADAPTER_ERRORS as e:
            raise AdapterUnavailableError(f"Failed to enable bluetooth adapter: {e}") from e

    async def _probe(self) -> None:
        scanner = self._scanner_factory(detection_callback=lambda device, adv: None)
        await scanner.start()
        try:
            await asyncio.sleep(ADAPTER_PROBE_TIMEOUT)
        finally:
            await scanner.stop()

    def start(self, check_adapter: bool = True) -> None:
        """
        Start the duty cycle on a background thread.

        Raises:
            AdapterUnavailableError: If the adapter probe fails.
        """
        if self.is_running:
            logger.warning("Scan source already running")
            return

        if check_adapter:
            self.check_adapter()

        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name='tagwatch-scanner',
        )
        self._thread.start()
        logger.info(
            f"Scan source started (rate={self._scan_rate}s, length={self._scan_length}s)"
        )

    def stop(self, timeout: float = SCANNER_STOP_TIMEOUT) -> None:
        """Signal the duty cycle to stop and wait for the thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Scan thread did not stop in time")
            else:
                self._thread = None
        logger.info("Scan source stopped")

    def run(self) -> None:
        """Run the rest/scan duty cycle until the stop signal is set."""
        reason = 'stopped'
        loop = asyncio.new_event_loop()
        try:
            while not self._stop_event.wait(self._scan_rate):
                try:
                    loop.run_until_complete(self._scan_window())
                except _ADAPTER_ERRORS as e:
                    self._error_count += 1
                    logger.error(f"Failed to scan: {e}")
                    continue

                self._scan_count += 1
                self._put_marker(ScanWindowComplete(scan_count=self._scan_count))
        except Exception as e:
            reason = 'error'
            logger.exception(f"Scan thread error: {e}")
        finally:
            loop.close()
            self._put_final_marker(ScanStopped(reason=reason))
            self._exit_reason = reason

    async def _scan_window(self) -> None:
        """Scan for one window, stopping early if cancelled."""
        scanner = self._scanner_factory(detection_callback=self._on_detection)
        await scanner.start()
        try:
            deadline = time.monotonic() + self._scan_length
            while not self._stop_event.is_set():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(remaining, _STOP_CHECK_INTERVAL))
        finally:
            await scanner.stop()

    def _on_detection(self, device: Any, advertisement_data: Any) -> None:
        """
        Detection callback: push the advertisement onto the queue.

        Runs on the scanner's event loop, so a full queue drops the
        advertisement instead of waiting for room.
        """
        if self._stop_event.is_set():
            return

        advertisement = Advertisement.from_bleak(device, advertisement_data)
        try:
            self._output.put_nowait(advertisement)
        except queue.Full:
            self._dropped_count += 1
            if self._dropped_count % _DROP_LOG_EVERY == 1:
                logger.warning(
                    f"Scan queue full, dropped {self._dropped_count} advertisements so far"
                )

    def _put_marker(self, marker: Any) -> None:
        """Put a control marker, giving up once the stop signal is set."""
        while not self._stop_event.is_set():
            try:
                self._output.put(marker, timeout=self._put_timeout)
                return
            except queue.Full:
                continue

    def _put_final_marker(self, marker: Any) -> None:
        """
        Deliver the exit marker, retrying on a full queue for a bounded time.

        Once the stop signal is set the tracking loop is already shutting
        down and no longer needs the marker.
        """
        deadline = time.monotonic() + SCANNER_STOP_TIMEOUT
        while True:
            try:
                self._output.put(marker, timeout=self._put_timeout)
                return
            except queue.Full:
                if self._stop_event.is_set() or time.monotonic() >= deadline:
                    logger.warning(f"Scan queue full, exit marker not delivered ({marker.reason})")
                    return
