"""
Data models for the FindMy tracking pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Optional

from .classifier import (
    get_company_id,
    is_airtag_shaped,
    is_findmy_broadcast,
    is_registered,
)


@dataclass(frozen=True)
class Advertisement:
    """
    One BLE advertisement as delivered by the radio.

    Only the already-decoded fields the pipeline needs are kept.
    """

    address: str
    manufacturer_data: dict[int, bytes] = field(default_factory=dict)
    local_name: Optional[str] = None
    rssi: Optional[int] = None

    @classmethod
    def from_bleak(cls, device: Any, advertisement_data: Any) -> 'Advertisement':
        """Build from the arguments of a bleak detection callback."""
        manufacturer_data = {
            int(company_id): bytes(payload)
            for company_id, payload in (advertisement_data.manufacturer_data or {}).items()
        }
        return cls(
            address=device.address.upper(),
            manufacturer_data=manufacturer_data,
            local_name=advertisement_data.local_name or getattr(device, 'name', None),
            rssi=advertisement_data.rssi,
        )


@dataclass
class TrackedDevice:
    """
    Presence record for a single device address.

    Classification properties are derived from the latest advertisement on
    every access so they always match the most recent sighting.
    """

    address: str
    advertisement: Advertisement
    first_seen: datetime
    last_seen: datetime
    times_seen: int = 1

    @property
    def duration(self) -> timedelta:
        """How long the device has been tracked."""
        return self.last_seen - self.first_seen

    @property
    def manufacturer_data(self) -> dict[int, bytes]:
        return self.advertisement.manufacturer_data

    @property
    def local_name(self) -> Optional[str]:
        return self.advertisement.local_name

    @property
    def company_id(self) -> int:
        return get_company_id(self.manufacturer_data)

    @property
    def is_findmy(self) -> bool:
        return is_findmy_broadcast(self.manufacturer_data)

    @property
    def is_airtag(self) -> bool:
        return is_airtag_shaped(self.manufacturer_data)

    @property
    def is_registered(self) -> bool:
        return is_registered(self.manufacturer_data)

    def copy(self) -> 'TrackedDevice':
        """Return an independent copy of this record."""
        return replace(self)


@dataclass(frozen=True)
class DeviceView:
    """Read-only view of a tracked device handed to snapshot consumers."""

    address: str
    company_id: int
    company_name: str
    manufacturer_data: Optional[bytes]
    is_airtag: bool
    is_registered: bool
    first_seen: datetime
    last_seen: datetime
    times_seen: int
    local_name: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.last_seen - self.first_seen

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'address': self.address,
            'local_name': self.local_name,
            'company_id': self.company_id,
            'company_name': self.company_name,
            'manufacturer_data': self.manufacturer_data.hex() if self.manufacturer_data is not None else None,
            'is_airtag': self.is_airtag,
            'is_registered': self.is_registered,
            'first_seen': self.first_seen.isoformat(),
            'last_seen': self.last_seen.isoformat(),
            'duration_seconds': self.duration.total_seconds(),
            'times_seen': self.times_seen,
        }


@dataclass(frozen=True)
class Snapshot:
    """Ordered point-in-time list of tracked devices."""

    devices: tuple[DeviceView, ...] = ()
    scan_count: int = 0
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    def __len__(self) -> int:
        return len(self.devices)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'scan_count': self.scan_count,
            'created_at': self.created_at.isoformat(),
            'device_count': len(self.devices),
            'devices': [d.to_dict() for d in self.devices],
        }


@dataclass(frozen=True)
class ScanWindowComplete:
    """Marker put on the scan queue after each finished scan window."""

    scan_count: int


@dataclass(frozen=True)
class ScanStopped:
    """Marker put on the scan queue when the scan source exits."""

    reason: str = 'stopped'
