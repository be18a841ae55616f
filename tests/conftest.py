import json

import pytest

from services.inventory.app import db as inventory_db
from services.order.app import db as order_db
from services.order.app.repository import OrderRepository


class FakeRedis:
    """redis.asyncio.Redis の publish だけを真似る。"""

    def __init__(self):
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        return 1

    def events(self):
        return [payload["event_type"] for _, payload in self.published]


@pytest.fixture
async def order_sessions(tmp_path):
    engine, session_factory = order_db.create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}"
    )
    await order_db.init_schema(engine)
    yield session_factory
    await engine.dispose()


@pytest.fixture
async def inventory_sessions(tmp_path):
    engine, session_factory = inventory_db.create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}"
    )
    await inventory_db.init_schema(engine)
    yield session_factory
    await engine.dispose()


@pytest.fixture
def repository(order_sessions):
    return OrderRepository(order_sessions)


@pytest.fixture
def fake_redis():
    return FakeRedis()
