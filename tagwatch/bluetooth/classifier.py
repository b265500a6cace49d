"""
FindMy advertisement classification.

Decides from the manufacturer-specific data of a single advertisement whether
a device is broadcasting on Apple's Find My network, whether the payload has
the AirTag shape, and whether that AirTag is registered to an owner or is
broadcasting in unregistered / lost mode.

Classification is purely structural: it looks at the first two bytes of the
Apple payload. It does NOT verify rotating identifiers, so results are
indicators, not proof.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import (
    AIRTAG_PAYLOAD_LENGTH,
    APPLE_COMPANY_ID,
    FINDMY_PAYLOAD_TYPES,
    MIN_FINDMY_PAYLOAD_LEN,
    UNREGISTERED_FINDMY_DEVICE,
)

ManufacturerData = Mapping[int, bytes]


def _apple_payload(data: Optional[ManufacturerData]) -> Optional[bytes]:
    """Return the Apple payload if it is long enough to classify."""
    if not data:
        return None
    payload = data.get(APPLE_COMPANY_ID)
    if payload is None or len(payload) < MIN_FINDMY_PAYLOAD_LEN:
        return None
    return bytes(payload)


def is_findmy_broadcast(data: Optional[ManufacturerData]) -> bool:
    """Check if the Apple payload starts with a Find My broadcast marker."""
    payload = _apple_payload(data)
    return payload is not None and payload[0] in FINDMY_PAYLOAD_TYPES


def is_airtag_shaped(data: Optional[ManufacturerData]) -> bool:
    """Check for a Find My marker followed by the AirTag payload length."""
    payload = _apple_payload(data)
    if payload is None:
        return False
    return payload[0] in FINDMY_PAYLOAD_TYPES and payload[1] == AIRTAG_PAYLOAD_LENGTH


def is_registered(data: Optional[ManufacturerData]) -> bool:
    """
    Check if an AirTag is registered to an owner.

    Only AirTag-shaped payloads can be registered; anything else is False.
    """
    if not is_airtag_shaped(data):
        return False
    return data[APPLE_COMPANY_ID][0] != UNREGISTERED_FINDMY_DEVICE


def get_company_id(data: Optional[ManufacturerData]) -> int:
    """Return the first company identifier in the data, or 0 if there is none."""
    if data:
        for company_id in data:
            return company_id
    return 0


@dataclass(frozen=True)
class FindMyClassification:
    """All classifier answers for one advertisement."""

    is_findmy: bool = False
    is_airtag: bool = False
    is_registered: bool = False

    @property
    def status(self) -> Optional[str]:
        """'registered', 'unregistered', or None for non-AirTags."""
        if not self.is_airtag:
            return None
        return 'registered' if self.is_registered else 'unregistered'

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'is_findmy': self.is_findmy,
            'is_airtag': self.is_airtag,
            'is_registered': self.is_registered,
            'status': self.status,
        }


def classify(data: Optional[ManufacturerData]) -> FindMyClassification:
    """Run every predicate over one manufacturer-data mapping."""
    return FindMyClassification(
        is_findmy=is_findmy_broadcast(data),
        is_airtag=is_airtag_shaped(data),
        is_registered=is_registered(data),
    )
