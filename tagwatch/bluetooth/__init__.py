"""
Bluetooth tracking package for tagwatch.

Provides duty-cycled BLE scanning with bleak, FindMy / AirTag classification,
a thread-safe device registry, and deduplicated snapshot publishing.
"""

from .classifier import (
    FindMyClassification,
    classify,
    get_company_id,
    is_airtag_shaped,
    is_findmy_broadcast,
    is_registered,
)
from .company_ids import CompanyIdentifiers, load_company_identifiers
from .constants import (
    # FindMy markers
    APPLE_COMPANY_ID,
    FINDMY_NETWORK_BROADCAST_ID,
    UNREGISTERED_FINDMY_DEVICE,
    AIRTAG_PAYLOAD_LENGTH,
    # Snapshot triggers
    SNAPSHOT_TRIGGER_INTERVAL,
    SNAPSHOT_TRIGGER_SCAN_WINDOW,
    UNKNOWN_COMPANY,
)
from .models import (
    Advertisement,
    DeviceView,
    ScanStopped,
    ScanWindowComplete,
    Snapshot,
    TrackedDevice,
)
from .publisher import SnapshotPublisher, build_view, sort_devices, tracking_order
from .registry import DeviceRegistry
from .scanner import ScanSource
from .tracker import SnapshotTrigger, Ticker, TrackerState, TrackingLoop

__all__ = [
    # Tracking loop
    'TrackingLoop',
    'TrackerState',
    'SnapshotTrigger',
    'Ticker',

    # Models
    'Advertisement',
    'TrackedDevice',
    'DeviceView',
    'Snapshot',
    'ScanWindowComplete',
    'ScanStopped',

    # Classification
    'FindMyClassification',
    'classify',
    'get_company_id',
    'is_findmy_broadcast',
    'is_airtag_shaped',
    'is_registered',

    # Registry and publishing
    'DeviceRegistry',
    'SnapshotPublisher',
    'build_view',
    'sort_devices',
    'tracking_order',

    # Scanning
    'ScanSource',

    # Company identifiers
    'CompanyIdentifiers',
    'load_company_identifiers',

    # Constants
    'APPLE_COMPANY_ID',
    'FINDMY_NETWORK_BROADCAST_ID',
    'UNREGISTERED_FINDMY_DEVICE',
    'AIRTAG_PAYLOAD_LENGTH',
    'SNAPSHOT_TRIGGER_INTERVAL',
    'SNAPSHOT_TRIGGER_SCAN_WINDOW',
    'UNKNOWN_COMPANY',
]
