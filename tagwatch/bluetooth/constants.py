"""
Bluetooth-specific constants for the FindMy tracking pipeline.
"""

from __future__ import annotations

# =============================================================================
# FINDMY ADVERTISEMENT MARKERS
# =============================================================================

# Bluetooth SIG company identifier for Apple, Inc.
APPLE_COMPANY_ID = 0x004C

# First byte of the Apple payload: Find My network broadcast (owner registered)
FINDMY_NETWORK_BROADCAST_ID = 0x12

# First byte of the Apple payload: unregistered / lost-mode broadcast
UNREGISTERED_FINDMY_DEVICE = 0x07

# Second byte of the Apple payload: AirTag payload length
AIRTAG_PAYLOAD_LENGTH = 0x19

FINDMY_PAYLOAD_TYPES = (UNREGISTERED_FINDMY_DEVICE, FINDMY_NETWORK_BROADCAST_ID)

# Type + length bytes must both be present before a payload is classified
MIN_FINDMY_PAYLOAD_LEN = 2

# =============================================================================
# SCANNER SETTINGS
# =============================================================================

# Rest between scan windows (seconds)
DEFAULT_SCAN_RATE = 0.05

# Length of one active scan window (seconds)
DEFAULT_SCAN_LENGTH = 0.2

# Capacity of the advertisement queue between scanner and tracking loop
DEFAULT_SCAN_BUFFER_SIZE = 500

# Wait per attempt when a control marker meets a full scan queue
SCAN_QUEUE_PUT_TIMEOUT = 0.05

# Duration of the adapter probe run before the pipeline starts
ADAPTER_PROBE_TIMEOUT = 0.1

# Thread join timeout when stopping the scanner
SCANNER_STOP_TIMEOUT = 2.0

# =============================================================================
# TRACKING SETTINGS
# =============================================================================

# Interval between stale-device sweeps (seconds)
DEFAULT_TRIM_INTERVAL = 1.0

# Devices not seen for this long are evicted (seconds)
DEFAULT_OLDEST_DEVICE = 24 * 60 * 60

# Interval between snapshot emissions when driven by the timer (seconds)
DEFAULT_SNAPSHOT_INTERVAL = 10.0

# Upper bound on a single blocking wait in the tracking loop (seconds)
LOOP_POLL_INTERVAL = 0.25

SNAPSHOT_TRIGGER_INTERVAL = 'interval'
SNAPSHOT_TRIGGER_SCAN_WINDOW = 'scan_window'

# =============================================================================
# COMPANY IDENTIFIERS
# =============================================================================

UNKNOWN_COMPANY = 'Unknown'

COMPANY_IDENTIFIERS_FILENAME = 'company_identifiers.yaml'

# =============================================================================
# DISPLAY
# =============================================================================

# Terminal rows reserved for table borders and headers
SCREEN_ROW_BUFFER = 5

# Seconds without a snapshot before the writer logs that it is idle
SCREEN_IDLE_TIMEOUT = 5.0
