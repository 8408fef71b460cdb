"""
Tests for the QR payload codec and RFID helpers.
"""

import json
from datetime import datetime, timedelta, timezone

from doujindesk.services.qr_codec import (
    QRCodeData,
    encode_qr_payload,
    decode_qr_payload,
    validate_qr_payload,
    generate_rfid_code,
    validate_rfid_format,
)

NOW = datetime(2026, 8, 15, 9, 0, tzinfo=timezone.utc)


def payload(**overrides) -> QRCodeData:
    values = dict(
        ticket_id="ticket_1723712400000_abc123xyz",
        event_id="comic-frontier-18",
        ticket_type="weekend-pass",
        purchase_date=NOW,
        valid_until=NOW + timedelta(days=7),
        attendee_name="Rina Ayu",
        attendee_email="rina@example.com",
    )
    values.update(overrides)
    return QRCodeData(**values)


def test_round_trip_preserves_identity_fields():
    decoded = decode_qr_payload(encode_qr_payload(payload()))
    assert decoded is not None
    assert decoded.ticket_id == "ticket_1723712400000_abc123xyz"
    assert decoded.event_id == "comic-frontier-18"
    assert decoded.ticket_type == "weekend-pass"
    assert decoded.attendee_name == "Rina Ayu"
    assert decoded.attendee_email == "rina@example.com"


def test_encoding_is_deterministic_and_camel_cased():
    token = encode_qr_payload(payload())
    assert token == encode_qr_payload(payload())
    assert " " not in token.replace("Rina Ayu", "")

    keys = list(json.loads(token).keys())
    assert keys == sorted(keys)
    assert set(keys) == {
        "ticketId", "eventId", "ticketType", "purchaseDate",
        "validUntil", "attendeeName", "attendeeEmail",
    }


def test_decode_rejects_malformed_input():
    assert decode_qr_payload("QR_FAKE") is None
    assert decode_qr_payload("[1, 2, 3]") is None
    assert decode_qr_payload('{"ticketId": "x"}') is None
    assert decode_qr_payload("") is None


def test_expired_payload_fails_validation():
    expired = payload(valid_until=NOW - timedelta(seconds=1))
    assert validate_qr_payload(expired, now=NOW) is False
    assert validate_qr_payload(payload(), now=NOW) is True


def test_validation_requires_ids():
    assert validate_qr_payload(payload(ticket_id=""), now=NOW) is False
    assert validate_qr_payload(payload(event_id=""), now=NOW) is False


def test_naive_valid_until_treated_as_utc():
    naive = payload(valid_until=(NOW + timedelta(hours=1)).replace(tzinfo=None))
    assert validate_qr_payload(naive, now=NOW) is True


def test_rfid_codes():
    code = generate_rfid_code()
    assert len(code) == 12
    assert validate_rfid_format(code)
    assert not validate_rfid_format("abcdef123456")
    assert not validate_rfid_format("ABCDEF12345")
    assert not validate_rfid_format("GHIJKL123456")
