"""
Tests for gate scanning, the admission latch and offline sync.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, func

from doujindesk.db.base import utcnow
from doujindesk.models import TicketPurchase, TicketValidation
from doujindesk.services.validation_service import check_ticket, validate_ticket


async def log_size(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(TicketValidation))).scalar()


async def scan(client, headers, qr_code, gate_id="GATE_A", validation_type="entry"):
    response = await client.post(
        "/api/v1/validations/scan",
        json={"qr_code": qr_code, "gate_id": gate_id, "validation_type": validation_type},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_valid_entry_latches_ticket(client: AsyncClient, staff_headers, staff_user, make_purchase, db_session):
    purchase = await make_purchase()

    result = await scan(client, staff_headers, purchase.qr_code)
    assert result["is_valid"] is True
    assert result["error_reason"] is None
    assert result["ticket_id"] == purchase.id
    assert result["validation"]["staff_id"] == str(staff_user.id)

    await db_session.refresh(purchase)
    assert purchase.is_used is True
    assert purchase.used_at is not None
    assert purchase.entry_gate == "GATE_A"


@pytest.mark.asyncio
async def test_second_scan_rejected(client: AsyncClient, staff_headers, make_purchase):
    purchase = await make_purchase()
    await scan(client, staff_headers, purchase.qr_code)

    result = await scan(client, staff_headers, purchase.qr_code, gate_id="GATE_B")
    assert result["is_valid"] is False
    assert result["error_reason"] == "Ticket already used"


@pytest.mark.asyncio
async def test_unknown_code_rejected_and_logged(client: AsyncClient, staff_headers, make_purchase, db_session):
    purchase = await make_purchase()
    before = await log_size(db_session)

    result = await scan(client, staff_headers, "QR_FAKE")
    assert result["is_valid"] is False
    assert result["error_reason"] == "Ticket not found"
    assert result["ticket_id"] is None
    assert await log_size(db_session) == before + 1

    entry = (await db_session.execute(select(TicketValidation))).scalars().one()
    assert entry.scanned_code == "QR_FAKE"
    assert entry.ticket_id is None

    await db_session.refresh(purchase)
    assert purchase.is_used is False


@pytest.mark.asyncio
async def test_every_scan_appends_one_entry(client: AsyncClient, staff_headers, make_purchase, db_session):
    purchase = await make_purchase()
    codes = [purchase.qr_code, purchase.qr_code, "QR_FAKE", purchase.qr_code]

    for n, code in enumerate(codes, start=1):
        await scan(client, staff_headers, code)
        assert await log_size(db_session) == n


@pytest.mark.asyncio
async def test_unpaid_ticket_rejected(client: AsyncClient, staff_headers, make_purchase):
    purchase = await make_purchase(payment_status="pending")
    result = await scan(client, staff_headers, purchase.qr_code)
    assert result["error_reason"] == "Payment not confirmed"


@pytest.mark.asyncio
async def test_refunded_ticket_rejected(client: AsyncClient, staff_headers, make_purchase):
    purchase = await make_purchase(payment_status="refunded")
    result = await scan(client, staff_headers, purchase.qr_code)
    assert result["error_reason"] == "Payment not confirmed"


@pytest.mark.asyncio
async def test_expired_ticket_rejected(client: AsyncClient, staff_headers, make_purchase, db_session):
    now = utcnow()
    purchase = await make_purchase(valid_from=now - timedelta(days=8), valid_until=now - timedelta(days=1))

    result = await scan(client, staff_headers, purchase.qr_code)
    assert result["error_reason"] == "Ticket not valid for current date/time"

    await db_session.refresh(purchase)
    assert purchase.is_used is False


@pytest.mark.asyncio
async def test_not_yet_valid_ticket_rejected(client: AsyncClient, staff_headers, make_purchase):
    now = utcnow()
    purchase = await make_purchase(valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=8))
    result = await scan(client, staff_headers, purchase.qr_code)
    assert result["error_reason"] == "Ticket not valid for current date/time"


@pytest.mark.asyncio
async def test_checkout_ticket_admits_once(client: AsyncClient, staff_headers, ticket_types):
    created = (await client.post("/api/v1/purchases", json={
        "ticket_type_id": "saturday-only",
        "attendee_name": "Budi",
        "attendee_email": "budi@example.com",
    })).json()

    assert (await scan(client, staff_headers, created["qr_code"]))["is_valid"] is True
    assert (await scan(client, staff_headers, created["qr_code"]))["error_reason"] == "Ticket already used"


@pytest.mark.asyncio
async def test_exit_requires_admission(client: AsyncClient, staff_headers, make_purchase, db_session):
    purchase = await make_purchase()

    result = await scan(client, staff_headers, purchase.qr_code, validation_type="exit")
    assert result["error_reason"] == "Ticket not admitted"

    await scan(client, staff_headers, purchase.qr_code)
    result = await scan(client, staff_headers, purchase.qr_code, validation_type="exit")
    assert result["is_valid"] is True

    # Leaving does not reopen the latch
    result = await scan(client, staff_headers, purchase.qr_code)
    assert result["error_reason"] == "Ticket already used"


@pytest.mark.asyncio
async def test_area_access_needs_listed_area(client: AsyncClient, staff_headers, make_purchase):
    purchase = await make_purchase(special_access=["VIP_LOUNGE"])

    result = await scan(client, staff_headers, purchase.qr_code, gate_id="VIP_LOUNGE", validation_type="area_access")
    assert result["error_reason"] == "No access to this area"

    await scan(client, staff_headers, purchase.qr_code)

    result = await scan(client, staff_headers, purchase.qr_code, gate_id="VIP_LOUNGE", validation_type="area_access")
    assert result["is_valid"] is True

    result = await scan(client, staff_headers, purchase.qr_code, gate_id="BACKSTAGE", validation_type="area_access")
    assert result["error_reason"] == "No access to this area"


@pytest.mark.asyncio
async def test_latch_race_reports_already_used(db_session, make_purchase):
    """A scan that passed the checks but lost the latch UPDATE is rejected."""
    purchase = await make_purchase()
    # Another gate latched the ticket behind this session's back
    await db_session.execute(
        TicketPurchase.__table__.update()
        .where(TicketPurchase.__table__.c.id == purchase.id)
        .values(is_used=True)
    )
    assert check_ticket(purchase, "entry", "GATE_A", utcnow()) is None

    outcome = await validate_ticket(db_session, purchase.qr_code, "GATE_A", "1")
    assert outcome.is_valid is False
    assert outcome.error_reason == "Ticket already used"


def test_check_ticket_order():
    """Payment is checked before the latch, the latch before the window."""
    now = utcnow()
    stale = TicketPurchase(
        payment_status="pending",
        is_used=True,
        valid_from=now - timedelta(days=9),
        valid_until=now - timedelta(days=2),
        special_access=[],
    )
    assert check_ticket(stale, "entry", "G", now) == "Payment not confirmed"
    stale.payment_status = "paid"
    assert check_ticket(stale, "entry", "G", now) == "Ticket already used"
    stale.is_used = False
    assert check_ticket(stale, "entry", "G", now) == "Ticket not valid for current date/time"
    assert check_ticket(None, "entry", "G", now) == "Ticket not found"


@pytest.mark.asyncio
async def test_offline_sync_replays_in_order(client: AsyncClient, staff_headers, make_purchase, db_session):
    now = utcnow()
    purchase = await make_purchase(valid_from=now - timedelta(days=3), valid_until=now - timedelta(hours=1))
    scanned_at = (now - timedelta(days=1)).isoformat()

    response = await client.post("/api/v1/validations/sync", json={"scans": [
        {"qr_code": purchase.qr_code, "gate_id": "GATE_C", "validation_type": "entry", "scanned_at": scanned_at},
        {"qr_code": purchase.qr_code, "gate_id": "GATE_D", "validation_type": "entry", "scanned_at": scanned_at},
        {"qr_code": "QR_FAKE", "gate_id": "GATE_C", "validation_type": "entry", "scanned_at": scanned_at},
    ]}, headers=staff_headers)
    assert response.status_code == 200
    results = response.json()

    # Expired now, but valid at the moment it was scanned
    assert [r["is_valid"] for r in results] == [True, False, False]
    assert results[1]["error_reason"] == "Ticket already used"
    assert results[2]["error_reason"] == "Ticket not found"
    assert await log_size(db_session) == 3

    await db_session.refresh(purchase)
    assert purchase.entry_gate == "GATE_C"


@pytest.mark.asyncio
async def test_validation_history_newest_first(client: AsyncClient, staff_headers, make_purchase):
    purchase = await make_purchase()
    await scan(client, staff_headers, purchase.qr_code, gate_id="GATE_A")
    await scan(client, staff_headers, "QR_FAKE", gate_id="GATE_B")
    await scan(client, staff_headers, purchase.qr_code, gate_id="GATE_B")

    response = await client.get("/api/v1/validations", headers=staff_headers)
    assert response.status_code == 200
    entries = response.json()
    assert len(entries) == 3
    assert entries[0]["id"] > entries[-1]["id"]

    response = await client.get("/api/v1/validations", params={"gate_id": "GATE_B"}, headers=staff_headers)
    assert len(response.json()) == 2

    response = await client.get("/api/v1/validations", params={"ticket_id": purchase.id}, headers=staff_headers)
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_scan_requires_staff_token(client: AsyncClient):
    response = await client.post("/api/v1/validations/scan", json={"qr_code": "QR_FAKE", "gate_id": "GATE_A"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_verify_qr(client: AsyncClient, ticket_types):
    created = (await client.post("/api/v1/purchases", json={
        "ticket_type_id": "weekend-pass",
        "attendee_name": "Sari",
        "attendee_email": "sari@example.com",
    })).json()

    response = await client.post("/api/v1/validations/verify-qr", json={"qr_code": created["qr_code"]})
    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is True
    assert data["ticket_id"] == created["id"]
    assert data["attendee_name"] == "Sari"

    response = await client.post("/api/v1/validations/verify-qr", json={"qr_code": "QR_FAKE"})
    assert response.json() == {
        "is_valid": False, "ticket_id": None, "event_id": None,
        "ticket_type": None, "attendee_name": None, "valid_until": None,
    }
