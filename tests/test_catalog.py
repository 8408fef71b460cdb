"""
Tests for the ticket catalog endpoints.
"""

import pytest
from httpx import AsyncClient

from doujindesk.services.catalog_service import seed_ticket_types

NEW_TYPE = {
    "id": "cosplay-day",
    "name": "Cosplay Day",
    "description": "Cosplay stage access",
    "price_idr": 90000,
    "price_usd": "6.50",
    "category": "special",
    "day": "sunday",
    "benefits": ["Stage access"],
    "max_quantity": 200,
}


@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session, ticket_types):
    assert set(ticket_types) == {"weekend-pass", "saturday-only", "sunday-only", "vip-pass"}
    assert await seed_ticket_types(db_session) == 0
    assert all(t.available_quantity == t.max_quantity for t in ticket_types.values())


@pytest.mark.asyncio
async def test_list_and_get_types(client: AsyncClient, ticket_types):
    response = await client.get("/api/v1/tickets/types")
    assert response.status_code == 200
    assert len(response.json()) == 4

    response = await client.get("/api/v1/tickets/types/vip-pass")
    assert response.status_code == 200
    data = response.json()
    assert data["price_idr"] == 300000
    assert data["price_usd"] == 20.0
    assert data["requires_id"] is True


@pytest.mark.asyncio
async def test_get_unknown_type(client: AsyncClient, ticket_types):
    response = await client.get("/api/v1/tickets/types/nope")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_active_excludes_inactive_and_sold_out(
    client: AsyncClient, admin_headers, ticket_types
):
    await client.patch("/api/v1/tickets/types/sunday-only", json={"is_active": False}, headers=admin_headers)
    await client.patch("/api/v1/tickets/types/vip-pass", json={"available_quantity": 0}, headers=admin_headers)

    response = await client.get("/api/v1/tickets/types/active")
    assert response.status_code == 200
    ids = {t["id"] for t in response.json()}
    assert ids == {"weekend-pass", "saturday-only"}


@pytest.mark.asyncio
async def test_create_type_defaults_available_to_max(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/tickets/types", json=NEW_TYPE, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["available_quantity"] == 200
    assert data["price_usd"] == 6.5


@pytest.mark.asyncio
async def test_create_duplicate_type(client: AsyncClient, admin_headers, ticket_types):
    response = await client.post(
        "/api/v1/tickets/types", json={**NEW_TYPE, "id": "vip-pass"}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_type_requires_admin(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/tickets/types", json=NEW_TYPE, headers=staff_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_type_rejects_available_above_max(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/v1/tickets/types",
        json={**NEW_TYPE, "available_quantity": 201},
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_cannot_push_available_over_max(client: AsyncClient, admin_headers, ticket_types):
    response = await client.patch(
        "/api/v1/tickets/types/vip-pass", json={"max_quantity": 100}, headers=admin_headers
    )
    # 500 tickets still available, a 100 cap would break the invariant
    assert response.status_code == 422

    response = await client.patch(
        "/api/v1/tickets/types/vip-pass",
        json={"max_quantity": 100, "available_quantity": 100},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["available_quantity"] == 100


@pytest.mark.asyncio
async def test_update_bumps_version(client: AsyncClient, admin_headers, ticket_types):
    before = ticket_types["weekend-pass"].version
    response = await client.patch(
        "/api/v1/tickets/types/weekend-pass", json={"name": "Weekend Pass+"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert ticket_types["weekend-pass"].version == before + 1


@pytest.mark.asyncio
async def test_delete_type(client: AsyncClient, admin_headers, ticket_types):
    response = await client.delete("/api/v1/tickets/types/sunday-only", headers=admin_headers)
    assert response.status_code == 204

    response = await client.get("/api/v1/tickets/types/sunday-only")
    assert response.status_code == 404

    response = await client.delete("/api/v1/tickets/types/sunday-only", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_quote_endpoint(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/tickets/quote", json={
        "ticket_type_id": "vip-pass",
        "quantity": 5,
        "is_pwd": True,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["price_idr"] == 1_200_000
    assert data["discount_applied"] == {"type": "pwd", "amount": 300000.0, "percentage": 20}


@pytest.mark.asyncio
async def test_quote_quantity_limit(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/tickets/quote", json={
        "ticket_type_id": "weekend-pass",
        "quantity": 11,
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_quote_unknown_type(client: AsyncClient, ticket_types):
    response = await client.post("/api/v1/tickets/quote", json={"ticket_type_id": "nope"})
    assert response.status_code == 404
