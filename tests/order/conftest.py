import asyncio
from decimal import Decimal

import pytest

from services.order.app.inventory_client import InventoryNotFound, InventoryUnavailable
from services.order.app.models import ProductSnapshot


class FakeInventory:
    """InventoryGateway の代わり。fetch された product_id を順番に記録する。"""

    def __init__(self, products, unavailable=()):
        self.products = products
        self.unavailable = set(unavailable)
        self.calls = []

    async def fetch(self, product_id):
        self.calls.append(product_id)
        if product_id in self.unavailable:
            raise InventoryUnavailable(f"inventory returned 500 for {product_id}: db down")
        if product_id not in self.products:
            raise InventoryNotFound(product_id)
        return self.products[product_id]


class BlockingInventory:
    """fetch に入ったところで止まり、キャンセルされるまで戻らない在庫。"""

    def __init__(self):
        self.calls = []
        self.entered = asyncio.Event()
        self.cancelled = False

    async def fetch(self, product_id):
        self.calls.append(product_id)
        self.entered.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


@pytest.fixture
def blocking_inventory():
    return BlockingInventory()


@pytest.fixture
def make_inventory():
    """make_inventory({"p1": ("10.00", 5)}, unavailable=["p9"])"""

    def _make(catalog, unavailable=()):
        products = {
            pid: ProductSnapshot(id=pid, name=f"Product {pid}", price=Decimal(price), stock=stock)
            for pid, (price, stock) in catalog.items()
        }
        return FakeInventory(products, unavailable)

    return _make
