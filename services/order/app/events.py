"""
Order Service — イベント定義と発行

注文の作成・ステータス変更を Redis Pub/Sub の order_events チャネルに通知する。
イベントは過去形で命名し、不変(immutable)として扱う。

通知はベストエフォート: 注文はすでに保存済みなので、
Redis への発行に失敗してもログに残すだけで処理は失敗させない。
"""

import json
import logging
from datetime import datetime
from decimal import Decimal

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import RedisError

from .models import Order

logger = logging.getLogger(__name__)

CHANNEL = "order_events"


class OrderCreated(BaseModel):
    """注文が作成された"""
    order_id: str
    user_id: str
    items: list[dict]
    total_amount: Decimal
    timestamp: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderCreated":
        return cls(
            order_id=order.id,
            user_id=order.user_id,
            items=[i.model_dump(mode="json") for i in order.items],
            total_amount=order.total_amount,
            timestamp=order.created_at,
        )


class OrderStatusChanged(BaseModel):
    """注文ステータスが変更された"""
    order_id: str
    previous_status: str
    status: str
    timestamp: datetime


class EventPublisher:
    def __init__(self, redis: aioredis.Redis | None):
        self.redis = redis

    async def publish(self, event: BaseModel) -> None:
        if self.redis is None:
            return
        event_type = type(event).__name__
        payload = json.dumps({
            "event_type": event_type,
            "data": event.model_dump(mode="json"),
        }, default=str)
        try:
            await self.redis.publish(CHANNEL, payload)
        except RedisError:
            logger.exception("Failed to publish %s", event_type)
