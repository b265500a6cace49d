"""
Snapshot publishing for tracked devices.

Orders the registry contents so that the devices that have followed us the
longest come first, and forwards the list downstream only when it changed.
"""

from __future__ import annotations

import logging
import queue
from datetime import timedelta
from typing import Iterable, Optional

from .classifier import get_company_id
from .company_ids import CompanyIdentifiers
from .models import DeviceView, Snapshot, TrackedDevice

logger = logging.getLogger('tagwatch.bluetooth.publisher')


def tracking_order(device: TrackedDevice) -> tuple[timedelta, str]:
    """Sort key: longest tracking duration first, then address."""
    return (-device.duration, device.address)


def sort_devices(devices: Iterable[TrackedDevice]) -> list[TrackedDevice]:
    """Return devices in tracking order."""
    return sorted(devices, key=tracking_order)


def build_view(device: TrackedDevice, company_ids: CompanyIdentifiers) -> DeviceView:
    """Build the consumer-facing view of a tracked device."""
    company_id = get_company_id(device.manufacturer_data)
    payload = device.manufacturer_data.get(company_id) if device.manufacturer_data else None
    return DeviceView(
        address=device.address,
        company_id=company_id,
        company_name=company_ids.resolve(company_id),
        manufacturer_data=bytes(payload) if payload is not None else None,
        is_airtag=device.is_airtag,
        is_registered=device.is_registered,
        first_seen=device.first_seen,
        last_seen=device.last_seen,
        times_seen=device.times_seen,
        local_name=device.local_name,
    )


class SnapshotPublisher:
    """
    Publishes sorted device snapshots to a downstream queue.

    The last published device list is kept on the instance and compared
    field by field with every new one; unchanged lists are not forwarded.
    """

    def __init__(self, company_ids: CompanyIdentifiers, output: queue.Queue):
        self._company_ids = company_ids
        self._output = output
        self._last_sent: Optional[tuple[DeviceView, ...]] = None
        self._published_count = 0

    def publish(self, devices: Iterable[TrackedDevice], scan_count: int) -> bool:
        """
        Sort, compare and forward a device list.

        Args:
            devices: Point-in-time copies of the tracked devices.
            scan_count: Number of completed scan windows.

        Returns:
            True if a snapshot was forwarded downstream.
        """
        views = tuple(build_view(device, self._company_ids) for device in sort_devices(devices))

        if self._last_sent is not None and views == self._last_sent:
            return False

        snapshot = Snapshot(devices=views, scan_count=scan_count)
        self._deliver(snapshot)
        self._last_sent = views
        self._published_count += 1
        logger.debug(f"Published snapshot of {len(views)} devices (scan {scan_count})")
        return True

    def _deliver(self, snapshot: Snapshot) -> None:
        """Put without blocking, replacing a snapshot the consumer has not read yet."""
        try:
            self._output.put_nowait(snapshot)
        except queue.Full:
            try:
                self._output.get_nowait()
            except queue.Empty:
                pass
            self._output.put_nowait(snapshot)

    @property
    def last_published(self) -> Optional[tuple[DeviceView, ...]]:
        """Device list of the most recent published snapshot."""
        return self._last_sent

    @property
    def published_count(self) -> int:
        """Number of snapshots forwarded downstream."""
        return self._published_count
