import httpx
import pytest

from services.gateway.app import clients as clients_module
from services.gateway.app.clients import DownstreamConnectError, connect


def healthy(request):
    return httpx.Response(200, json={"status": "ok"})


def refusing(request):
    raise httpx.ConnectError("connection refused", request=request)


def client(handler, base_url):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)


async def test_connect_waits_for_both_services():
    inventory = client(healthy, "http://inventory")
    order = client(healthy, "http://order")

    connected = await connect(inventory, order, timeout=1.0)

    assert connected.inventory is inventory
    assert connected.order is order
    await connected.aclose()


async def test_connect_retries_until_service_answers(monkeypatch):
    monkeypatch.setattr(clients_module, "HEALTH_POLL_INTERVAL", 0.01)
    attempts = []

    def starting_up(request):
        attempts.append(request.url.path)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200)

    connected = await connect(
        client(healthy, "http://inventory"), client(starting_up, "http://order"), timeout=1.0
    )

    assert attempts == ["/health"] * 3
    await connected.aclose()


async def test_connect_fails_and_closes_clients_when_one_service_is_down(monkeypatch):
    monkeypatch.setattr(clients_module, "HEALTH_POLL_INTERVAL", 0.01)
    inventory = client(healthy, "http://inventory")
    order = client(refusing, "http://order")

    with pytest.raises(DownstreamConnectError) as exc:
        await connect(inventory, order, timeout=0.1)

    assert "order" in str(exc.value)
    assert inventory.is_closed
    assert order.is_closed
