"""
Inventory Service — クエリハンドラ (Read 側)

注文サービスは get_product の結果 (id, name, price, stock) を
価格・在庫の正として使う。このサービスは在庫を変更しない。
"""

from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import products


class Product(BaseModel):
    id: str
    name: str
    description: str = ""
    price: Decimal
    stock: int
    category_id: str | None = None


def _to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        description=row.description or "",
        price=Decimal(str(row.price)),
        stock=row.stock,
        category_id=row.category_id,
    )


async def get_product(session: AsyncSession, product_id: str) -> Product | None:
    result = await session.execute(select(products).where(products.c.id == product_id))
    row = result.fetchone()
    if not row:
        return None
    return _to_product(row)


async def list_products(session: AsyncSession, category_id: str | None = None) -> list[Product]:
    """全商品を名前順で返す。category_id を指定するとそのカテゴリだけに絞る。"""
    query = select(products).order_by(products.c.name)
    if category_id:
        query = query.where(products.c.category_id == category_id)
    result = await session.execute(query)
    return [_to_product(row) for row in result.fetchall()]
