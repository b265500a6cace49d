"""Shared fixtures for tagwatch tests."""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from tagwatch.bluetooth.company_ids import CompanyIdentifiers
from tagwatch.bluetooth.constants import APPLE_COMPANY_ID
from tagwatch.bluetooth.models import Advertisement


# Sample Apple payloads
UNREGISTERED_AIRTAG = bytes([0x07, 0x19, 0x01, 0x02])
REGISTERED_AIRTAG = bytes([0x12, 0x19, 0x10, 0xDE, 0xAD])
FINDMY_ACCESSORY = bytes([0x12, 0x02, 0x00, 0x01])
APPLE_NEARBY = bytes([0x10, 0x05, 0x01, 0x18])


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


class FakeScanner:
    """
    Stand-in for bleak's BleakScanner.

    Replays the configured advertisements through the detection callback
    every time scanning starts.
    """

    def __init__(self, detection_callback=None, advertisements=(), start_error=None, **kwargs):
        self._callback = detection_callback
        self._advertisements = list(advertisements)
        self._start_error = start_error
        self.started = 0
        self.stopped = 0

    async def start(self):
        if self._start_error is not None:
            raise self._start_error
        self.started += 1
        for device, data in self._advertisements:
            self._callback(device, data)

    async def stop(self):
        self.stopped += 1


def make_scanner_factory(advertisements=(), start_error=None):
    """Build a factory producing FakeScanner instances."""
    def factory(detection_callback=None, **kwargs):
        return FakeScanner(
            detection_callback=detection_callback,
            advertisements=advertisements,
            start_error=start_error,
        )
    return factory


def bleak_advertisement(address, manufacturer_data=None, local_name=None, rssi=-60):
    """Build (device, advertisement_data) as bleak passes them to callbacks."""
    device = SimpleNamespace(address=address, name=local_name)
    data = SimpleNamespace(
        manufacturer_data=manufacturer_data or {},
        local_name=local_name,
        rssi=rssi,
    )
    return device, data


def make_advertisement(address="AA:BB:CC:DD:EE:FF", payload=UNREGISTERED_AIRTAG, company_id=APPLE_COMPANY_ID):
    """Build an Advertisement with a single manufacturer-data entry."""
    manufacturer_data = {} if payload is None else {company_id: payload}
    return Advertisement(address=address, manufacturer_data=manufacturer_data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def company_ids():
    return CompanyIdentifiers({
        0x004C: "Apple, Inc.",
        0x0075: "Samsung Electronics Co. Ltd.",
    })
