"""
Tracking loop: the coordinator of the FindMy tracking pipeline.

Consumes advertisements from the scan source, folds FindMy broadcasts into
the device registry, ages out stale devices on the trim timer and publishes
a sorted, deduplicated snapshot on the snapshot trigger.

Each iteration services exactly one ready event source. When several are
ready at once the choice is random, so a flood of advertisements cannot
starve the timers and vice versa.
"""

from __future__ import annotations

import logging
import queue
import random
import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from .classifier import is_findmy_broadcast
from .company_ids import CompanyIdentifiers
from .constants import (
    DEFAULT_OLDEST_DEVICE,
    DEFAULT_SCAN_BUFFER_SIZE,
    DEFAULT_SCAN_LENGTH,
    DEFAULT_SCAN_RATE,
    DEFAULT_SNAPSHOT_INTERVAL,
    DEFAULT_TRIM_INTERVAL,
    LOOP_POLL_INTERVAL,
    SNAPSHOT_TRIGGER_INTERVAL,
    SNAPSHOT_TRIGGER_SCAN_WINDOW,
)
from .models import Advertisement, ScanStopped, ScanWindowComplete
from .publisher import SnapshotPublisher
from .registry import DeviceRegistry
from .scanner import ScannerFactory, ScanSource

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger('tagwatch.bluetooth.tracker')


class TrackerState(str, Enum):
    """Lifecycle states of the tracking loop."""
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


class SnapshotTrigger(str, Enum):
    """What causes a snapshot to be taken."""
    INTERVAL = SNAPSHOT_TRIGGER_INTERVAL        # fixed-period timer
    SCAN_WINDOW = SNAPSHOT_TRIGGER_SCAN_WINDOW  # end of every scan window


class Ticker:
    """
    Fixed-period deadline checked by the tracking loop.

    Ticks missed while the loop was busy collapse into one.
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        if interval <= 0:
            raise ValueError(f"Ticker interval must be positive, got {interval}")
        self.interval = interval
        self._clock = clock
        self._next = clock() + interval

    def due(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now >= self._next

    def remaining(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return max(0.0, self._next - now)

    def reset(self, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        self._next = now + self.interval


class TrackingLoop:
    """
    Owns the device registry and multiplexes scan, trim and snapshot events.

    Args:
        company_ids: Company identifier lookup for snapshot views.
        output: Queue that receives published Snapshot objects.
        scan_rate: Rest between scan windows (seconds).
        scan_length: Length of one scan window (seconds).
        scan_buffer_size: Capacity of the advertisement queue.
        trim_interval: Period of the stale-device sweep (seconds).
        oldest_device: Staleness threshold (seconds or timedelta).
        snapshot_interval: Period of the snapshot timer (seconds).
        snapshot_trigger: Timer driven or scan-window driven snapshots.
        stop_event: Shared cancellation signal; a private one when None.
        scanner_factory: bleak-compatible scanner factory for the scan source.
        clock: Wall clock for device timestamps.
        monotonic: Clock for timer deadlines.
        rng: Random source used to pick between ready events.
    """

    def __init__(
        self,
        company_ids: CompanyIdentifiers,
        output: queue.Queue,
        scan_rate: float = DEFAULT_SCAN_RATE,
        scan_length: float = DEFAULT_SCAN_LENGTH,
        scan_buffer_size: int = DEFAULT_SCAN_BUFFER_SIZE,
        trim_interval: float = DEFAULT_TRIM_INTERVAL,
        oldest_device: Union[float, timedelta] = DEFAULT_OLDEST_DEVICE,
        snapshot_interval: float = DEFAULT_SNAPSHOT_INTERVAL,
        snapshot_trigger: Union[SnapshotTrigger, str] = SnapshotTrigger.SCAN_WINDOW,
        stop_event: Optional[threading.Event] = None,
        scanner_factory: Optional[ScannerFactory] = None,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._events: queue.Queue = queue.Queue(maxsize=scan_buffer_size)
        self._registry = DeviceRegistry(clock=clock)
        self._publisher = SnapshotPublisher(company_ids, output)
        self._scan_source = ScanSource(
            self._events,
            scan_rate=scan_rate,
            scan_length=scan_length,
            stop_event=self._stop_event,
            scanner_factory=scanner_factory,
        )

        if not isinstance(oldest_device, timedelta):
            oldest_device = timedelta(seconds=oldest_device)
        self._oldest_device = oldest_device
        self._snapshot_trigger = SnapshotTrigger(snapshot_trigger)

        self._monotonic = monotonic
        self._rng = rng or random.Random()
        self._trim_ticker = Ticker(trim_interval, clock=monotonic)
        self._snapshot_ticker: Optional[Ticker] = None
        if self._snapshot_trigger == SnapshotTrigger.INTERVAL:
            self._snapshot_ticker = Ticker(snapshot_interval, clock=monotonic)

        self._state = TrackerState.STOPPED
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started = False
        self._scan_stopped = False
        self._stop_reason: Optional[str] = None
        self._scan_count = 0
        self._device_count = 0
        self._discarded_count = 0

    @classmethod
    def from_config(
        cls,
        config: 'AppConfig',
        company_ids: CompanyIdentifiers,
        output: queue.Queue,
        **kwargs: Any,
    ) -> 'TrackingLoop':
        """Build a tracking loop from the application configuration."""
        return cls(
            company_ids,
            output,
            scan_rate=config.scan.scan_rate,
            scan_length=config.scan.scan_length,
            scan_buffer_size=config.scan.buffer_size,
            trim_interval=config.tracking.trim_interval,
            oldest_device=config.tracking.oldest_device,
            snapshot_interval=config.tracking.snapshot_interval,
            snapshot_trigger=config.tracking.snapshot_trigger,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def stop_event(self) -> threading.Event:
        """The shared cancellation signal."""
        return self._stop_event

    @property
    def stop_reason(self) -> Optional[str]:
        """
        Why the loop is ending: 'stopped' for a requested stop, 'error' when
        the scan source or the loop failed. None while running normally.
        """
        return self._stop_reason

    def start(self) -> None:
        """
        Start scanning and run the loop on a background thread.

        Raises:
            AdapterUnavailableError: If the adapter cannot scan; nothing is started.
        """
        self._begin()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name='tagwatch-tracker')
        self._thread.start()

    def run(self) -> None:
        """Start scanning and run the loop on the calling thread until stopped."""
        self._begin()
        self._run_loop()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Signal cancellation and wait for the loop to finish.

        Returns:
            True if the loop reached the stopped state within the timeout.
        """
        self._stop_event.set()
        if not self._started:
            return True
        return self.wait(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the loop has stopped."""
        return self._done.wait(timeout)

    def _begin(self) -> None:
        if self._state != TrackerState.STOPPED or self._done.is_set():
            raise RuntimeError("Tracking loop can only be started once")
        self._scan_source.start()
        self._started = True
        self._state = TrackerState.RUNNING
        logger.info(f"Tracking loop started (snapshot trigger: {self._snapshot_trigger.value})")

    def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set() and not self._scan_stopped:
                self.step()
        except Exception as e:
            self._stop_reason = 'error'
            logger.exception(f"Tracking loop error: {e}")
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        """Stop the scan source, fold what is already buffered, and finish."""
        self._state = TrackerState.STOPPING
        self._stop_event.set()
        self._scan_source.stop()

        drained = 0
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                break
            if isinstance(item, Advertisement):
                self._handle_advertisement(item)
                drained += 1

        if self._stop_reason is None:
            self._stop_reason = 'stopped'
        self._state = TrackerState.STOPPED
        self._done.set()
        logger.info(
            f"Tracking loop stopped ({drained} buffered advertisements drained, "
            f"{self._device_count} devices tracked)"
        )

    # -------------------------------------------------------------------------
    # Event multiplexing
    # -------------------------------------------------------------------------

    def step(self, timeout: Optional[float] = None) -> bool:
        """
        Service one ready event source.

        Args:
            timeout: Longest wait when nothing is ready; until the next
                timer deadline (bounded by the poll interval) when None.

        Returns:
            True if an event was serviced.
        """
        if self._events.empty() and self._scan_source_exited():
            return False

        now = self._monotonic()
        ready: list[Callable[[float], None]] = []
        if not self._events.empty():
            ready.append(self._service_scan_queue)
        if self._trim_ticker.due(now):
            ready.append(self._service_trim)
        if self._snapshot_ticker is not None and self._snapshot_ticker.due(now):
            ready.append(self._service_snapshot_timer)

        if ready:
            self._rng.choice(ready)(now)
            return True

        wait = self._next_wait(now) if timeout is None else timeout
        try:
            item = self._events.get(timeout=wait)
        except queue.Empty:
            return False
        self._dispatch(item)
        return True

    def _scan_source_exited(self) -> bool:
        """Notice a scan source that exited without its marker reaching the queue."""
        reason = self._scan_source.exit_reason
        if reason is None:
            return False
        if self._scan_stopped:
            return True
        self._scan_stopped = True
        if self._stop_reason is None:
            self._stop_reason = reason
        logger.warning(f"Scan source exited without notice ({reason})")
        return True

    def _next_wait(self, now: float) -> float:
        wait = min(LOOP_POLL_INTERVAL, self._trim_ticker.remaining(now))
        if self._snapshot_ticker is not None:
            wait = min(wait, self._snapshot_ticker.remaining(now))
        return max(0.0, wait)

    def _service_scan_queue(self, now: float) -> None:
        try:
            item = self._events.get_nowait()
        except queue.Empty:
            return
        self._dispatch(item)

    def _service_trim(self, now: float) -> None:
        self._trim_ticker.reset(now)
        self.trim()

    def _service_snapshot_timer(self, now: float) -> None:
        self._snapshot_ticker.reset(now)
        self.publish_snapshot()

    def _dispatch(self, item: Any) -> None:
        if isinstance(item, Advertisement):
            self._handle_advertisement(item)
        elif isinstance(item, ScanWindowComplete):
            self._scan_count = item.scan_count
            if self._snapshot_trigger == SnapshotTrigger.SCAN_WINDOW:
                self.publish_snapshot()
        elif isinstance(item, ScanStopped):
            self._scan_stopped = True
            if self._stop_reason is None:
                self._stop_reason = item.reason
            logger.info(f"Scan source exited ({item.reason})")
        else:
            logger.warning(f"Ignoring unexpected scan queue item: {item!r}")

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    def _handle_advertisement(self, advertisement: Advertisement) -> None:
        if not is_findmy_broadcast(advertisement.manufacturer_data):
            self._discarded_count += 1
            return

        if self._registry.observe(advertisement):
            self._device_count += 1
            logger.info(f"FindMy device detected: {advertisement.address}")

    def trim(self) -> int:
        """Evict stale devices now; returns the number removed."""
        removed = self._registry.evict_stale(self._oldest_device)
        self._device_count -= removed
        return removed

    def publish_snapshot(self) -> bool:
        """Snapshot the registry and publish it if it changed."""
        return self._publisher.publish(self._registry.snapshot(), self._scan_count)

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    @property
    def events(self) -> queue.Queue:
        """Queue between the scan source and this loop."""
        return self._events

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def publisher(self) -> SnapshotPublisher:
        return self._publisher

    @property
    def scan_source(self) -> ScanSource:
        return self._scan_source

    @property
    def device_count(self) -> int:
        """Running count of tracked devices."""
        return self._device_count

    @property
    def scan_count(self) -> int:
        """Completed scan windows reported by the scan source."""
        return self._scan_count

    @property
    def discarded_count(self) -> int:
        """Advertisements dropped by the FindMy filter."""
        return self._discarded_count
