from decimal import Decimal

import httpx
import pytest
from sqlalchemy import insert

from services.inventory.app.db import products
from services.inventory.app.main import create_app


@pytest.fixture
async def client(inventory_sessions):
    async with inventory_sessions() as session:
        await session.execute(
            insert(products),
            [
                {"id": "p2", "name": "Mouse", "description": "", "price": Decimal("5.00"),
                 "stock": 0, "category_id": "c1"},
                {"id": "p1", "name": "Keyboard", "description": "US layout",
                 "price": Decimal("10.00"), "stock": 5, "category_id": "c1"},
                {"id": "p3", "name": "Desk", "description": "", "price": Decimal("120.00"),
                 "stock": 2, "category_id": "c2"},
            ],
        )
        await session.commit()

    app = create_app(session_factory=inventory_sessions)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://inventory"
    ) as client:
        yield client


async def test_get_product(client):
    resp = await client.get("/queries/products/p1")

    assert resp.status_code == 200
    assert resp.json() == {
        "id": "p1",
        "name": "Keyboard",
        "description": "US layout",
        "price": "10.00",
        "stock": 5,
        "category_id": "c1",
    }


async def test_unknown_product_is_structured_not_found(client):
    resp = await client.get("/queries/products/missing")

    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


async def test_list_products_is_ordered_by_name(client):
    resp = await client.get("/queries/products")

    assert [p["id"] for p in resp.json()] == ["p3", "p1", "p2"]


async def test_list_products_filtered_by_category(client):
    resp = await client.get("/queries/products", params={"category_id": "c1"})

    assert [p["id"] for p in resp.json()] == ["p1", "p2"]


async def test_unknown_category_lists_nothing(client):
    resp = await client.get("/queries/products", params={"category_id": "nope"})

    assert resp.status_code == 200
    assert resp.json() == []


async def test_health(client):
    assert (await client.get("/health")).json()["service"] == "inventory-service"
