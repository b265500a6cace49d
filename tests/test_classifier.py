"""
Test suite for FindMy advertisement classification.

Contains sample Apple manufacturer payloads and verifies the classifier
identifies Find My broadcasts, AirTag-shaped payloads and registration state.
"""

import pytest

from tagwatch.bluetooth.classifier import (
    FindMyClassification,
    classify,
    get_company_id,
    is_airtag_shaped,
    is_findmy_broadcast,
    is_registered,
)
from tagwatch.bluetooth.constants import APPLE_COMPANY_ID

from conftest import APPLE_NEARBY, FINDMY_ACCESSORY, REGISTERED_AIRTAG, UNREGISTERED_AIRTAG


# =============================================================================
# SAMPLE PAYLOADS
# =============================================================================

PAYLOAD_SAMPLES = [
    # (name, manufacturer data, is_findmy, is_airtag, is_registered)
    ('unregistered AirTag', {APPLE_COMPANY_ID: UNREGISTERED_AIRTAG}, True, True, False),
    ('registered AirTag, header only', {APPLE_COMPANY_ID: bytes([0x12, 0x19])}, True, True, True),
    ('registered AirTag', {APPLE_COMPANY_ID: REGISTERED_AIRTAG}, True, True, True),
    ('Find My accessory (not AirTag length)', {APPLE_COMPANY_ID: FINDMY_ACCESSORY}, True, False, False),
    ('unregistered marker, wrong length', {APPLE_COMPANY_ID: bytes([0x07, 0x0F])}, True, False, False),
    ('Apple Nearby action', {APPLE_COMPANY_ID: APPLE_NEARBY}, False, False, False),
    ('Find My bytes under another company', {0x0075: bytes([0x12, 0x19])}, False, False, False),
    ('Apple entry next to other companies', {0x0075: b'\x01\x02', APPLE_COMPANY_ID: UNREGISTERED_AIRTAG}, True, True, False),
]

SHORT_PAYLOADS = [b'', b'\x07', b'\x12', b'\x19']


class TestPayloadSamples:
    """Tests against sample payloads."""

    @pytest.mark.parametrize(
        'name,data,findmy,airtag,registered',
        PAYLOAD_SAMPLES,
        ids=[s[0] for s in PAYLOAD_SAMPLES],
    )
    def test_sample(self, name, data, findmy, airtag, registered):
        """Test each predicate against a known payload."""
        assert is_findmy_broadcast(data) is findmy
        assert is_airtag_shaped(data) is airtag
        assert is_registered(data) is registered


class TestMalformedPayloads:
    """Classification must be total over arbitrary payloads."""

    @pytest.mark.parametrize('payload', SHORT_PAYLOADS)
    def test_short_payload_never_matches(self, payload):
        """Test payloads shorter than 2 bytes do not match and do not raise."""
        data = {APPLE_COMPANY_ID: payload}
        assert is_airtag_shaped(data) is False
        assert is_registered(data) is False
        assert is_findmy_broadcast(data) is False

    @pytest.mark.parametrize('data', [None, {}, {0x0006: b'\x12\x19'}])
    def test_missing_apple_entry(self, data):
        """Test empty or non-Apple manufacturer data is never Find My."""
        assert is_findmy_broadcast(data) is False
        assert is_airtag_shaped(data) is False
        assert is_registered(data) is False

    def test_bytearray_payload(self):
        """Test mutable byte payloads are accepted."""
        data = {APPLE_COMPANY_ID: bytearray(UNREGISTERED_AIRTAG)}
        assert is_airtag_shaped(data) is True


class TestWorkedExamples:
    """Worked examples for the AirTag markers."""

    def test_unregistered_airtag(self):
        """0x07 0x19 is an AirTag in unregistered / lost mode."""
        data = {0x004C: bytes([0x07, 0x19, 0x01, 0x02])}
        assert is_findmy_broadcast(data)
        assert is_airtag_shaped(data)
        assert not is_registered(data)

    def test_registered_airtag(self):
        """0x12 0x19 is an owner-registered AirTag."""
        data = {0x004C: bytes([0x12, 0x19])}
        assert is_registered(data)


class TestCompanyId:
    """Tests for company identifier extraction."""

    def test_first_key_is_returned(self):
        assert get_company_id({0x0075: b'', APPLE_COMPANY_ID: b''}) == 0x0075

    def test_no_data_returns_zero(self):
        assert get_company_id({}) == 0
        assert get_company_id(None) == 0


class TestClassify:
    """Tests for the bundled classification result."""

    def test_classify_unregistered(self):
        result = classify({APPLE_COMPANY_ID: UNREGISTERED_AIRTAG})
        assert result == FindMyClassification(is_findmy=True, is_airtag=True, is_registered=False)
        assert result.status == 'unregistered'

    def test_classify_registered(self):
        assert classify({APPLE_COMPANY_ID: REGISTERED_AIRTAG}).status == 'registered'

    def test_classify_not_airtag(self):
        result = classify({APPLE_COMPANY_ID: FINDMY_ACCESSORY})
        assert result.is_findmy
        assert result.status is None

    def test_to_dict(self):
        d = classify({APPLE_COMPANY_ID: UNREGISTERED_AIRTAG}).to_dict()
        assert d == {
            'is_findmy': True,
            'is_airtag': True,
            'is_registered': False,
            'status': 'unregistered',
        }
