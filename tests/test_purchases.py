"""
Tests for checkout, the purchase ledger and refunds.
"""

import asyncio
from datetime import timedelta

import pytest
from fastapi import HTTPException
from httpx import AsyncClient
from prometheus_client import REGISTRY
from sqlalchemy import event, select, func, text

from doujindesk.db.base import as_utc, utcnow
from doujindesk.models import TicketPurchase, TicketType
from doujindesk.services import cache_service, purchase_service
from doujindesk.services.qr_codec import decode_qr_payload, validate_rfid_format

CHECKOUT = {
    "ticket_type_id": "weekend-pass",
    "attendee_name": "Rina Ayu",
    "attendee_email": "rina@example.com",
    "attendee_phone": "+62811111111",
    "quantity": 2,
}


async def purchase_count(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(TicketPurchase))).scalar()


def ledger_row(n: int) -> TicketPurchase:
    now = utcnow()
    return TicketPurchase(
        id=f"ticket_race_{n}",
        ticket_type_id="afterparty",
        attendee_name="Racer",
        attendee_email="racer@example.com",
        quantity=1,
        total_price_idr=50000,
        total_price_usd=4,
        currency="IDR",
        payment_status="paid",
        qr_code=f"QR-race-{n}",
        valid_from=now,
        valid_until=now + timedelta(days=7),
    )


@pytest.mark.asyncio
async def test_checkout_issues_paid_ticket(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/purchases", json=CHECKOUT)
    assert response.status_code == 201
    data = response.json()

    assert data["id"].startswith("ticket_")
    assert data["payment_status"] == "paid"
    assert data["payment_reference"].startswith("PAY_")
    assert data["total_price_idr"] == 300000
    assert data["total_price_usd"] == 20.0
    assert data["discount_applied"] is None
    assert data["is_used"] is False
    assert validate_rfid_format(data["rfid_code"])

    qr = decode_qr_payload(data["qr_code"])
    assert qr.ticket_id == data["id"]
    assert qr.event_id == "comic-frontier-18"
    assert qr.ticket_type == "weekend-pass"
    assert qr.attendee_email == "rina@example.com"


@pytest.mark.asyncio
async def test_checkout_decrements_capacity(client: AsyncClient, ticket_types, db_session):
    before = await purchase_count(db_session)
    response = await client.post("/api/v1/purchases", json=CHECKOUT)
    assert response.status_code == 201

    assert await purchase_count(db_session) == before + 1
    response = await client.get("/api/v1/tickets/types/weekend-pass")
    assert response.json()["available_quantity"] == 5000 - 2


@pytest.mark.asyncio
async def test_checkout_validity_window(client: AsyncClient, ticket_types, db_session):
    response = await client.post("/api/v1/purchases", json=CHECKOUT)
    purchase = await db_session.get(TicketPurchase, response.json()["id"])
    assert as_utc(purchase.valid_until) - as_utc(purchase.valid_from) == timedelta(days=7)


@pytest.mark.asyncio
async def test_checkout_applies_discount(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/purchases", json={
        **CHECKOUT,
        "ticket_type_id": "vip-pass",
        "quantity": 5,
        "is_pwd": True,
        "attendee_id_number": "3174000000000001",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["total_price_idr"] == 1_200_000
    assert data["discount_applied"]["type"] == "pwd"
    assert data["discount_applied"]["percentage"] == 20


@pytest.mark.asyncio
async def test_checkout_requires_id_for_vip(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/purchases", json={**CHECKOUT, "ticket_type_id": "vip-pass"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_checkout_sold_out(client: AsyncClient, small_ticket_type, db_session):
    response = await client.post("/api/v1/purchases", json={**CHECKOUT, "ticket_type_id": "afterparty", "quantity": 3})
    assert response.status_code == 201

    before = await purchase_count(db_session)
    response = await client.post("/api/v1/purchases", json={**CHECKOUT, "ticket_type_id": "afterparty", "quantity": 1})
    assert response.status_code == 409
    assert await purchase_count(db_session) == before


@pytest.mark.asyncio
async def test_checkout_unknown_type(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/purchases", json={**CHECKOUT, "ticket_type_id": "ghost-pass"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_checkout_inactive_type(client: AsyncClient, admin_headers, ticket_types):
    await client.patch("/api/v1/tickets/types/saturday-only", json={"is_active": False}, headers=admin_headers)
    response = await client.post("/api/v1/purchases", json={**CHECKOUT, "ticket_type_id": "saturday-only"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_checkout_quantity_limit(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/purchases", json={**CHECKOUT, "quantity": 11})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_add_purchase_never_oversells(db_session, small_ticket_type):
    """Attempts past capacity fail and leave the counter at zero."""
    for n in range(3):
        await purchase_service.add_purchase(db_session, ledger_row(n))

    for n in range(3, 5):
        with pytest.raises(HTTPException) as exc_info:
            await purchase_service.add_purchase(db_session, ledger_row(n))
        assert exc_info.value.status_code == 409

    await db_session.refresh(small_ticket_type)
    assert small_ticket_type.available_quantity == 0
    assert await purchase_count(db_session) == 3


def retry_count() -> float:
    return REGISTRY.get_sample_value("db_retry_attempts_total") or 0.0


@pytest.fixture
def competing_checkouts(db_session):
    """
    Set "count" to make that many capacity UPDATEs on a ticket type lose the
    version race: a competing checkout bumps the version right before each.
    """
    pending = {"count": 0}

    def bump_version(orm_execute_state):
        mapper = orm_execute_state.bind_mapper
        if pending["count"] and orm_execute_state.is_update and mapper is not None and mapper.class_ is TicketType:
            pending["count"] -= 1
            orm_execute_state.session.execute(
                text("UPDATE ticket_types SET version = version + 1 WHERE id = :id"), {"id": "afterparty"}
            )

    event.listen(db_session.sync_session, "do_orm_execute", bump_version)
    yield pending
    event.remove(db_session.sync_session, "do_orm_execute", bump_version)


@pytest.mark.asyncio
async def test_add_purchase_retries_after_version_conflict(db_session, small_ticket_type, competing_checkouts):
    version_before = small_ticket_type.version
    retries_before = retry_count()
    competing_checkouts["count"] = 1

    purchase = await purchase_service.add_purchase(db_session, ledger_row(0))

    assert purchase.id == "ticket_race_0"
    assert retry_count() == retries_before + 1
    await db_session.refresh(small_ticket_type)
    assert small_ticket_type.available_quantity == 2
    # One bump from the competing checkout, one from ours
    assert small_ticket_type.version == version_before + 2


@pytest.mark.asyncio
async def test_add_purchase_gives_up_after_max_retries(db_session, small_ticket_type, competing_checkouts):
    retries_before = retry_count()
    competing_checkouts["count"] = purchase_service.MAX_RETRY_ATTEMPTS

    with pytest.raises(HTTPException) as exc_info:
        await purchase_service.add_purchase(db_session, ledger_row(0))

    assert exc_info.value.status_code == 409
    assert "high demand" in exc_info.value.detail
    assert retry_count() == retries_before + purchase_service.MAX_RETRY_ATTEMPTS
    await db_session.refresh(small_ticket_type)
    assert small_ticket_type.available_quantity == 3
    assert await purchase_count(db_session) == 0


@pytest.mark.asyncio
async def test_get_purchase(client: AsyncClient, ticket_types):
    created = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()
    response = await client.get(f"/api/v1/purchases/{created['id']}")
    assert response.status_code == 200
    assert response.json()["qr_code"] == created["qr_code"]

    response = await client.get("/api/v1/purchases/ticket_0_missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_purchases_by_email_newest_first(client: AsyncClient, ticket_types):
    first = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()
    await asyncio.sleep(0.01)
    second = (await client.post("/api/v1/purchases", json={**CHECKOUT, "ticket_type_id": "sunday-only"})).json()
    await client.post("/api/v1/purchases", json={**CHECKOUT, "attendee_email": "other@example.com"})

    response = await client.get("/api/v1/purchases/by-email", params={"email": "RINA@example.com"})
    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_list_purchases_admin_filter(client: AsyncClient, admin_headers, ticket_types, make_purchase):
    await make_purchase(payment_status="pending")
    await client.post("/api/v1/purchases", json=CHECKOUT)

    response = await client.get("/api/v1/purchases", params={"payment_status": "pending"}, headers=admin_headers)
    assert response.status_code == 200
    assert [p["payment_status"] for p in response.json()] == ["pending"]


@pytest.mark.asyncio
async def test_update_purchase(client: AsyncClient, admin_headers, ticket_types, make_purchase):
    purchase = await make_purchase(payment_status="pending")
    response = await client.patch(
        f"/api/v1/purchases/{purchase.id}",
        json={"payment_status": "paid", "attendee_phone": "+62822222222"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["payment_status"] == "paid"
    assert data["attendee_phone"] == "+62822222222"

    response = await client.patch("/api/v1/purchases/ticket_0_missing", json={}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_cannot_mark_refunded(client: AsyncClient, admin_headers, ticket_types, make_purchase):
    purchase = await make_purchase()
    response = await client.patch(
        f"/api/v1/purchases/{purchase.id}", json={"payment_status": "refunded"}, headers=admin_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_refund_restores_capacity(client: AsyncClient, admin_headers, ticket_types):
    created = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()

    response = await client.post(f"/api/v1/purchases/{created['id']}/refund", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payment_status"] == "refunded"

    response = await client.get("/api/v1/tickets/types/weekend-pass")
    assert response.json()["available_quantity"] == 5000


@pytest.mark.asyncio
async def test_refund_is_one_way(client: AsyncClient, admin_headers, ticket_types):
    created = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()
    await client.post(f"/api/v1/purchases/{created['id']}/refund", headers=admin_headers)

    response = await client.post(f"/api/v1/purchases/{created['id']}/refund", headers=admin_headers)
    assert response.status_code == 409

    response = await client.patch(
        f"/api/v1/purchases/{created['id']}", json={"payment_status": "paid"}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_refund_pending_purchase_rejected(client: AsyncClient, admin_headers, ticket_types, make_purchase):
    purchase = await make_purchase(payment_status="pending")
    response = await client.post(f"/api/v1/purchases/{purchase.id}/refund", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_refund_capacity_capped_at_max(client: AsyncClient, admin_headers, small_ticket_type, make_purchase):
    # Purchase inserted directly, so it never took capacity
    purchase = await make_purchase("afterparty", quantity=2)
    response = await client.post(f"/api/v1/purchases/{purchase.id}/refund", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/v1/tickets/types/afterparty")
    assert response.json()["available_quantity"] == 3


async def available(db_session, ticket_type_id: str = "weekend-pass") -> int:
    result = await db_session.execute(
        select(TicketType.available_quantity).where(TicketType.id == ticket_type_id)
    )
    return result.scalar()


@pytest.mark.asyncio
async def test_payment_status_only_moves_forward(client: AsyncClient, admin_headers, ticket_types, db_session):
    created = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()
    url = f"/api/v1/purchases/{created['id']}"

    response = await client.patch(url, json={"payment_status": "pending"}, headers=admin_headers)
    assert response.status_code == 409
    assert await available(db_session) == 4998

    response = await client.patch(url, json={"payment_status": "failed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payment_status"] == "failed"
    assert await available(db_session) == 5000

    for backwards in ("paid", "pending"):
        response = await client.patch(url, json={"payment_status": backwards}, headers=admin_headers)
        assert response.status_code == 409
    assert await available(db_session) == 5000

    response = await client.post(f"{url}/refund", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_pending_purchase_can_be_settled(client: AsyncClient, admin_headers, ticket_types, make_purchase):
    paid = await make_purchase(payment_status="pending")
    response = await client.patch(
        f"/api/v1/purchases/{paid.id}", json={"payment_status": "paid"}, headers=admin_headers
    )
    assert response.json()["payment_status"] == "paid"

    declined = await make_purchase(payment_status="pending")
    response = await client.patch(
        f"/api/v1/purchases/{declined.id}", json={"payment_status": "failed"}, headers=admin_headers
    )
    assert response.json()["payment_status"] == "failed"


@pytest.mark.asyncio
async def test_concurrent_refund_releases_capacity_once(client: AsyncClient, admin_headers, ticket_types, db_session):
    created = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()
    # Another admin refunded it after this session loaded the purchase
    await db_session.execute(
        TicketPurchase.__table__.update()
        .where(TicketPurchase.__table__.c.id == created["id"])
        .values(payment_status="refunded")
    )

    response = await client.post(f"/api/v1/purchases/{created['id']}/refund", headers=admin_headers)
    assert response.status_code == 409
    assert await available(db_session) == 4998


@pytest.mark.asyncio
async def test_cache_dropped_after_commit(client: AsyncClient, admin_headers, ticket_types, db_session, monkeypatch):
    open_transaction = []

    async def record_invalidation():
        open_transaction.append(db_session.in_transaction())

    monkeypatch.setattr(cache_service, "invalidate_ticket_cache", record_invalidation)

    created = (await client.post("/api/v1/purchases", json=CHECKOUT)).json()
    await client.patch(f"/api/v1/purchases/{created['id']}", json={"attendee_phone": "+62833"}, headers=admin_headers)
    await client.post(f"/api/v1/purchases/{created['id']}/refund", headers=admin_headers)

    assert open_transaction == [False, False, False]
