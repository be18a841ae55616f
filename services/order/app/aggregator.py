"""
Order Service — 注文明細の集計 (OrderAggregator)

各明細について在庫サービスに問い合わせ、価格スナップショット付きの
OrderItem と合計金額を組み立てる。

    for item in items (リクエスト順、1 件ずつ):
        fetch(product_id)
          ├─ NotFound     → ProductNotFound       (即中断)
          ├─ Unavailable  → DependencyUnavailable (即中断)
          └─ 取得成功
               ├─ quantity > stock → InsufficientStock (即中断)
               └─ OrderItem を追加し total += price × quantity

読んでから判断するだけで在庫は引き当てない。そのため中断しても
補償処理は不要だが、同じ在庫を複数の注文が同時に確保したと
見なしてしまう競合は残る。
"""

import logging
from collections.abc import Sequence
from decimal import Decimal

from .errors import DependencyUnavailable, InsufficientStock, ProductNotFound
from .inventory_client import InventoryGateway, InventoryNotFound, InventoryUnavailable
from .models import ItemRequest, OrderItem

logger = logging.getLogger(__name__)


class OrderAggregator:
    def __init__(self, inventory: InventoryGateway):
        self.inventory = inventory

    async def build(
        self,
        user_id: str,
        items: Sequence[ItemRequest],
    ) -> tuple[list[OrderItem], Decimal]:
        priced: list[OrderItem] = []
        total = Decimal("0")

        for item in items:
            try:
                snapshot = await self.inventory.fetch(item.product_id)
            except InventoryNotFound:
                raise ProductNotFound(item.product_id) from None
            except InventoryUnavailable as e:
                raise DependencyUnavailable(item.product_id, str(e)) from e

            if item.quantity > snapshot.stock:
                logger.info(
                    "Insufficient stock for product %s: requested %d, available %d",
                    item.product_id, item.quantity, snapshot.stock,
                )
                raise InsufficientStock(item.product_id, item.quantity, snapshot.stock)

            priced.append(
                OrderItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price_at_order=snapshot.price,
                )
            )
            total += snapshot.price * item.quantity

        logger.info(
            "Priced %d items for user %s, total %s", len(priced), user_id, total
        )
        return priced, total
