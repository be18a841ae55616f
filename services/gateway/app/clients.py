"""
Gateway — 下流サービスへの接続

起動時に Inventory Service と Order Service への接続を並列に確立する。
両方の /health が応答するまで待ち、どちらかが connect_timeout 以内に
応答しなければ起動を失敗させる（トラフィックを受け付けない）。
"""

import asyncio
import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

HEALTH_POLL_INTERVAL = 0.5


class DownstreamConnectError(Exception):
    pass


@dataclass
class ServiceClients:
    inventory: httpx.AsyncClient
    order: httpx.AsyncClient

    async def aclose(self) -> None:
        await asyncio.gather(self.inventory.aclose(), self.order.aclose())


async def wait_until_ready(client: httpx.AsyncClient, name: str, timeout: float) -> None:
    """client の /health が 200 を返すまで待つ。"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    logger.info("Connecting to %s service at %s", name, client.base_url)

    while True:
        remaining = deadline - loop.time()
        try:
            resp = await client.get("/health", timeout=max(min(remaining, 2.0), 0.1))
            if resp.status_code == 200:
                logger.info("Connected to %s service", name)
                return
            last_error = f"health returned {resp.status_code}"
        except httpx.HTTPError as e:
            last_error = repr(e)

        if loop.time() >= deadline:
            raise DownstreamConnectError(
                f"{name} service not reachable within {timeout}s: {last_error}"
            )
        await asyncio.sleep(HEALTH_POLL_INTERVAL)


async def connect(
    inventory: httpx.AsyncClient,
    order: httpx.AsyncClient,
    timeout: float,
) -> ServiceClients:
    clients = ServiceClients(inventory=inventory, order=order)
    results = await asyncio.gather(
        wait_until_ready(inventory, "inventory", timeout),
        wait_until_ready(order, "order", timeout),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        for failure in failures:
            logger.error("Downstream connection failed: %s", failure)
        await clients.aclose()
        raise failures[0]
    return clients
