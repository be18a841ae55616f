from uuid import uuid4

import httpx
import pytest

from services.order.app.aggregator import OrderAggregator
from services.order.app.events import EventPublisher
from services.order.app.main import create_app


@pytest.fixture
async def make_client(repository, fake_redis):
    clients = []

    async def _make(inventory):
        app = create_app(
            repository=repository,
            aggregator=OrderAggregator(inventory),
            publisher=EventPublisher(fake_redis),
        )
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://order-service"
        )
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(make_client, make_inventory):
    return await make_client(
        make_inventory({"p1": ("10.00", 5), "p2": ("5.00", 0)}, unavailable=["flaky"])
    )


async def create(client, user_id, *pairs):
    return await client.post(
        "/commands/orders",
        json={"user_id": user_id, "items": [{"product_id": p, "quantity": q} for p, q in pairs]},
    )


async def test_create_order(client):
    resp = await create(client, "u1", ("p1", 2))

    assert resp.status_code == 201
    body = resp.json()
    assert body["total_amount"] == "20.00"
    assert body["status"] == "pending"
    assert body["items"] == [{"product_id": "p1", "quantity": 2, "price_at_order": "10.00"}]

    fetched = await client.get(f"/queries/orders/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["total_amount"] == "20.00"


async def test_insufficient_stock_is_failed_precondition(client):
    resp = await create(client, "u1", ("p1", 2), ("p2", 1))

    assert resp.status_code == 409
    assert resp.json()["code"] == "FAILED_PRECONDITION"
    assert resp.json()["details"]["product_id"] == "p2"

    listed = await client.get("/queries/orders", params={"user_id": "u1"})
    assert listed.json()["total"] == 0


async def test_unknown_product_is_not_found(client):
    resp = await create(client, "u1", ("nope", 1))

    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


async def test_unavailable_inventory_hides_cause(client):
    resp = await create(client, "u1", ("flaky", 1))

    assert resp.status_code == 503
    assert resp.json()["code"] == "UNAVAILABLE"
    assert "db down" not in resp.text


@pytest.mark.parametrize(
    "payload",
    [
        {"user_id": "u1", "items": [{"product_id": "p1", "quantity": "many"}]},
        {"user_id": "u1", "items": "p1"},
        {"user_id": "u1", "items": []},
        {"items": [{"product_id": "p1", "quantity": 1}]},
    ],
)
async def test_malformed_create_request_is_invalid_argument(client, payload):
    resp = await client.post("/commands/orders", json=payload)

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_ARGUMENT"


@pytest.mark.parametrize("order_id", [str(uuid4()), "not-a-uuid"])
async def test_get_unknown_order(client, order_id):
    resp = await client.get(f"/queries/orders/{order_id}")

    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


async def test_list_orders_pagination(client):
    for _ in range(3):
        await create(client, "u1", ("p1", 1))

    resp = await client.get("/queries/orders", params={"user_id": "u1", "limit": 500})
    assert resp.status_code == 200
    assert resp.json()["limit"] == 100
    assert resp.json()["total"] == 3
    assert len(resp.json()["orders"]) == 3

    resp = await client.get("/queries/orders", params={"user_id": "u1", "limit": 0})
    assert resp.json()["limit"] == 10

    resp = await client.get("/queries/orders", params={"user_id": "u1", "offset": -1})
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_ARGUMENT"


async def test_list_orders_requires_user_id(client):
    resp = await client.get("/queries/orders")

    assert resp.status_code == 400


async def test_update_status(client):
    order_id = (await create(client, "u1", ("p1", 1))).json()["id"]

    resp = await client.post(f"/commands/orders/{order_id}/status", json={"status": "cancelled"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"


async def test_invalid_status_is_rejected_and_status_kept(client):
    order_id = (await create(client, "u1", ("p1", 1))).json()["id"]

    resp = await client.post(f"/commands/orders/{order_id}/status", json={"status": "shipped"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_ARGUMENT"
    assert (await client.get(f"/queries/orders/{order_id}")).json()["status"] == "pending"


async def test_health(client):
    resp = await client.get("/health")

    assert resp.json() == {"status": "ok", "service": "order-service"}


async def test_caller_deadline_stops_creation_before_persisting(make_client, blocking_inventory):
    client = await make_client(blocking_inventory)

    resp = await client.post(
        "/commands/orders",
        json={"user_id": "u1", "items": [{"product_id": "p1", "quantity": 1}]},
        headers={"X-Request-Timeout": "0.05"},
    )

    assert resp.status_code == 504
    assert resp.json()["code"] == "DEADLINE_EXCEEDED"
    assert blocking_inventory.cancelled
    listed = await client.get("/queries/orders", params={"user_id": "u1"})
    assert listed.json()["total"] == 0


async def test_unparseable_deadline_is_invalid_argument(client):
    resp = await client.post(
        "/commands/orders",
        json={"user_id": "u1", "items": [{"product_id": "p1", "quantity": 1}]},
        headers={"X-Request-Timeout": "soon"},
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_ARGUMENT"
