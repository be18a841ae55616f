"""
Order Service — ドメインモデル

Order 集約は OrderItem を埋め込んだ 1 つの単位として読み書きする。
金額はすべて Decimal で扱い、合計金額は作成時に一度だけ計算する。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .status import OrderStatus


class OrderItem(BaseModel):
    """注文明細。price_at_order は注文時点の価格スナップショットで、以後変わらない。"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int
    price_at_order: Decimal


class Order(BaseModel):
    id: str | None = None
    user_id: str
    items: list[OrderItem]
    total_amount: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderPage(BaseModel):
    orders: list[Order]
    total: int
    limit: int
    offset: int


class ProductSnapshot(BaseModel):
    """
    在庫サービスから取得した商品情報（永続化しない）

    price は orders.total_amount (Numeric 12,2) と同じ桁に収まるものだけ受け付ける。
    それより細かい価格は保存時に丸められ、合計と明細が合わなくなる。
    """
    id: str
    name: str
    price: Decimal = Field(max_digits=12, decimal_places=2)
    stock: int


# ── コマンド ─────────────────────────────────────
# 型以外の検証は validation.py で行うため、ここでは緩く受け取る。


class ItemRequest(BaseModel):
    product_id: str = ""
    quantity: int = 0


class CreateOrderCommand(BaseModel):
    user_id: str = ""
    items: list[ItemRequest] = Field(default_factory=list)


class UpdateStatusCommand(BaseModel):
    status: str = ""
