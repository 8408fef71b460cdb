"""
QR payload codec and RFID code helpers.

The QR token is the canonical identity of a ticket at the gate: a JSON
object with camelCase keys, serialized with sorted keys and no whitespace so
the same ticket always encodes to the same string.
"""

import json
import re
import secrets
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from doujindesk.db.base import as_utc

RFID_PATTERN = re.compile(r"^[0-9A-F]{12}$")


class QRCodeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ticket_id: str = Field(alias="ticketId")
    event_id: str = Field(alias="eventId")
    ticket_type: str = Field(alias="ticketType")
    purchase_date: datetime = Field(alias="purchaseDate")
    valid_until: datetime = Field(alias="validUntil")
    attendee_name: str = Field(alias="attendeeName")
    attendee_email: str = Field(alias="attendeeEmail")


def encode_qr_payload(data: QRCodeData) -> str:
    payload = data.model_dump(by_alias=True, mode="json")
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def decode_qr_payload(raw: str) -> Optional[QRCodeData]:
    """Parse a scanned token. Returns None for anything that is not a ticket payload."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None
    try:
        return QRCodeData.model_validate(parsed)
    except ValidationError:
        return None


def validate_qr_payload(data: QRCodeData, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(data.valid_until) > now and bool(data.ticket_id) and bool(data.event_id)


def generate_rfid_code() -> str:
    return "".join(secrets.choice("0123456789ABCDEF") for _ in range(12))


def validate_rfid_format(code: str) -> bool:
    return bool(RFID_PATTERN.match(code))
