"""
Order Service — コマンドハンドラ (CQRS の Write 側)

コマンドは状態を変更する操作。読み取りはリポジトリを直接使う。

注文作成の流れ:
    1. validate_create_order でリクエストの構造をチェック
    2. OrderAggregator が在庫サービスに 1 件ずつ問い合わせて価格を確定
    3. OrderRepository に集約ごと保存 (status = pending)
    4. Redis Pub/Sub で OrderCreated を発行

途中で失敗した場合は何も保存しない。在庫は読み取りしかしないので補償処理もない。

呼び出し元の期限 (deadline 秒) は手順 2 全体にかかる。期限が切れると
実行中の在庫問い合わせをキャンセルし、保存前に DeadlineExceeded を返す。
呼び出し元のタスク自体がキャンセルされた場合も同様に何も保存しない。
"""

import asyncio
import logging

from .aggregator import OrderAggregator
from .errors import DeadlineExceeded
from .events import EventPublisher, OrderCreated, OrderStatusChanged
from .models import CreateOrderCommand, Order
from .repository import OrderRepository
from .status import OrderStatus, transition
from .validation import validate_create_order

logger = logging.getLogger(__name__)


async def create_order(
    repository: OrderRepository,
    aggregator: OrderAggregator,
    publisher: EventPublisher,
    command: CreateOrderCommand,
    deadline: float | None = None,
) -> Order:
    """注文作成コマンド"""
    validated = validate_create_order(command)
    logger.info(
        "Creating order for user %s with %d items", validated.user_id, len(validated.items)
    )

    if deadline is not None and deadline <= 0:
        raise DeadlineExceeded(deadline)
    try:
        items, total = await asyncio.wait_for(
            aggregator.build(validated.user_id, validated.items), deadline
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Pricing for user %s did not finish within %ss, nothing persisted",
            validated.user_id, deadline,
        )
        raise DeadlineExceeded(deadline) from None

    order = await repository.create(
        Order(
            user_id=validated.user_id,
            items=items,
            total_amount=total,
            status=OrderStatus.PENDING,
        )
    )

    await publisher.publish(OrderCreated.from_order(order))
    return order


async def update_order_status(
    repository: OrderRepository,
    publisher: EventPublisher,
    order_id: str,
    requested_status: str,
) -> Order:
    """
    注文ステータス変更コマンド

    現在の注文を読み、遷移ルールを通してから保存する。
    ルールに反する場合は何も書き込まない。
    """
    current = await repository.get_by_id(order_id)
    new_status = transition(current.status, requested_status)

    await repository.update_status(order_id, new_status)
    updated = await repository.get_by_id(order_id)

    await publisher.publish(
        OrderStatusChanged(
            order_id=updated.id,
            previous_status=current.status.value,
            status=updated.status.value,
            timestamp=updated.updated_at,
        )
    )
    return updated
