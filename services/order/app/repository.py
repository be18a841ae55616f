"""
Order Service — 注文リポジトリ

Order 集約（明細込み）を 1 行として保存・取得する。

    create         : ID を採番し、created_at / updated_at を記録して INSERT
    get_by_id      : 1 件取得（不明な ID・形式不正な ID は RecordNotFound）
    update_status  : status と updated_at だけを更新
    list_by_owner  : ユーザーの注文を新しい順にページング取得 + 総件数

ページング:
    limit  未指定 / 0 以下 → 10、100 超 → 100
    offset 未指定 → 0、負の値 → ValidationFailed
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db import orders
from .errors import PersistenceFailure, RecordNotFound, ValidationFailed
from .models import Order, OrderItem, OrderPage
from .status import OrderStatus

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def normalize_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    if limit is None or limit <= 0:
        limit = DEFAULT_LIMIT
    limit = min(limit, MAX_LIMIT)
    if offset is None:
        offset = 0
    if offset < 0:
        raise ValidationFailed(f"Offset must be non-negative, got {offset}", field="offset")
    return limit, offset


def _parse_id(order_id: str) -> str:
    try:
        return str(UUID(order_id))
    except (ValueError, TypeError, AttributeError):
        raise RecordNotFound(str(order_id), malformed=True) from None


def _to_row(order: Order) -> dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "items": [
            {
                "product_id": item.product_id,
                "quantity": item.quantity,
                # JSON 内の価格は文字列で保存して精度を落とさない
                "price_at_order": str(item.price_at_order),
            }
            for item in order.items
        ],
        "total_amount": order.total_amount,
        "status": order.status.value,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _from_row(row) -> Order:
    data = row._mapping
    items = json.loads(data["items"]) if isinstance(data["items"], str) else data["items"]
    return Order(
        id=data["id"],
        user_id=data["user_id"],
        items=[
            OrderItem(
                product_id=i["product_id"],
                quantity=i["quantity"],
                price_at_order=Decimal(i["price_at_order"]),
            )
            for i in items
        ],
        total_amount=Decimal(str(data["total_amount"])),
        status=OrderStatus(data["status"]),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


class OrderRepository:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def create(self, order: Order) -> Order:
        now = datetime.now(timezone.utc)
        persisted = order.model_copy(
            update={"id": str(uuid4()), "created_at": now, "updated_at": now}
        )
        try:
            async with self.session_factory() as session:
                await session.execute(insert(orders).values(**_to_row(persisted)))
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception("Error saving order for user %s", order.user_id)
            raise PersistenceFailure("create order") from e

        logger.info(
            "Inserted order %s for user %s with %d items, total %s",
            persisted.id, persisted.user_id, len(persisted.items), persisted.total_amount,
        )
        return persisted

    async def get_by_id(self, order_id: str) -> Order:
        key = _parse_id(order_id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(orders).where(orders.c.id == key))
                row = result.fetchone()
        except SQLAlchemyError as e:
            logger.exception("Error loading order %s", order_id)
            raise PersistenceFailure("load order") from e

        if row is None:
            raise RecordNotFound(order_id)
        return _from_row(row)

    async def update_status(self, order_id: str, status: OrderStatus) -> None:
        key = _parse_id(order_id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(orders)
                    .where(orders.c.id == key)
                    .values(status=status.value, updated_at=datetime.now(timezone.utc))
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception("Error updating status of order %s", order_id)
            raise PersistenceFailure("update order status") from e

        if result.rowcount == 0:
            raise RecordNotFound(order_id)
        logger.info("Updated order %s status to %s", order_id, status.value)

    async def list_by_owner(
        self,
        user_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> OrderPage:
        if not user_id or not user_id.strip():
            raise ValidationFailed("User ID is required to list orders", field="user_id")
        limit, offset = normalize_page(limit, offset)

        try:
            async with self.session_factory() as session:
                total = await session.scalar(
                    select(func.count()).select_from(orders).where(orders.c.user_id == user_id)
                )
                result = await session.execute(
                    select(orders)
                    .where(orders.c.user_id == user_id)
                    .order_by(orders.c.created_at.desc())
                    .limit(limit)
                    .offset(offset)
                )
                rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.exception("Error listing orders for user %s", user_id)
            raise PersistenceFailure(f"list orders for user {user_id}") from e

        logger.info(
            "Found %d orders (total %d) for user %s, limit %d, offset %d",
            len(rows), total, user_id, limit, offset,
        )
        return OrderPage(
            orders=[_from_row(r) for r in rows],
            total=total or 0,
            limit=limit,
            offset=offset,
        )
