"""
Device registry for FindMy observations.

Holds one presence record per device address and ages out devices that have
not been seen recently.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from .models import Advertisement, TrackedDevice

logger = logging.getLogger('tagwatch.bluetooth.registry')

Clock = Callable[[], datetime]


class DeviceRegistry:
    """
    Thread-safe store of tracked devices keyed by address.

    Every read hands out copies, so callers never see a record that is
    half-way through an update.
    """

    def __init__(self, clock: Clock = datetime.now):
        self._devices: dict[str, TrackedDevice] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def observe(self, advertisement: Advertisement, now: Optional[datetime] = None) -> bool:
        """
        Record a sighting of a device.

        Args:
            advertisement: The advertisement that was received.
            now: Sighting time; the registry clock when None.

        Returns:
            True if the address was not tracked before this sighting.
        """
        address = advertisement.address
        seen_at = now if now is not None else self._clock()

        with self._lock:
            device = self._devices.get(address)
            if device is None:
                self._devices[address] = TrackedDevice(
                    address=address,
                    advertisement=advertisement,
                    first_seen=seen_at,
                    last_seen=seen_at,
                    times_seen=1,
                )
                logger.debug(f"New device tracked: {address}")
                return True

            device.advertisement = advertisement
            device.last_seen = max(seen_at, device.first_seen)
            device.times_seen += 1
            return False

    def evict_stale(
        self,
        threshold: Union[timedelta, float],
        now: Optional[datetime] = None,
    ) -> int:
        """
        Remove devices not seen within the threshold.

        A device last seen exactly ``threshold`` ago is kept.

        Args:
            threshold: Maximum age as a timedelta or in seconds.
            now: Reference time; the registry clock when None.

        Returns:
            Number of devices removed.
        """
        if not isinstance(threshold, timedelta):
            threshold = timedelta(seconds=threshold)
        reference = now if now is not None else self._clock()

        with self._lock:
            stale = [
                address for address, device in self._devices.items()
                if reference - device.last_seen > threshold
            ]
            for address in stale:
                del self._devices[address]

        if stale:
            logger.debug(f"Evicted {len(stale)} stale devices")
        return len(stale)

    def snapshot(self) -> list[TrackedDevice]:
        """Return copies of all tracked devices."""
        with self._lock:
            return [device.copy() for device in self._devices.values()]

    def get(self, address: str) -> Optional[TrackedDevice]:
        """Get a copy of one device record by address."""
        with self._lock:
            device = self._devices.get(address)
            return device.copy() if device is not None else None

    def clear(self) -> None:
        """Remove all tracked devices."""
        with self._lock:
            self._devices.clear()

    @property
    def device_count(self) -> int:
        """Number of tracked devices."""
        with self._lock:
            return len(self._devices)

    def __len__(self) -> int:
        return self.device_count

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._devices
