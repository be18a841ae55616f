"""
Order Service — 注文作成コマンドの構造チェック

在庫サービスへ問い合わせる前に、リクエストだけで判定できる誤りを弾く。
最初に見つかった違反だけを ValidationFailed として返す。
"""

from .errors import ValidationFailed
from .models import CreateOrderCommand, ItemRequest


def validate_create_order(command: CreateOrderCommand) -> CreateOrderCommand:
    """
    チェック順:
        1. user_id がある
        2. items が空でない
        3. 各 item の quantity > 0、product_id が空でない
        4. product_id が重複していない (最初の重複を報告)
    """
    user_id = command.user_id.strip()
    if not user_id:
        raise ValidationFailed("User ID is required", field="user_id")

    if not command.items:
        raise ValidationFailed("At least one item is required", field="items")

    for index, item in enumerate(command.items):
        if item.quantity <= 0:
            raise ValidationFailed(
                f"Invalid quantity {item.quantity} for item {index}: must be positive",
                field=f"items.{index}.quantity",
            )
        if not item.product_id.strip():
            raise ValidationFailed(
                f"Product ID is required for item {index}",
                field=f"items.{index}.product_id",
            )

    seen: set[str] = set()
    for item in command.items:
        if item.product_id in seen:
            raise ValidationFailed(
                f"Duplicate product ID in order: {item.product_id}",
                field="items",
                product_id=item.product_id,
            )
        seen.add(item.product_id)

    return CreateOrderCommand(
        user_id=user_id,
        items=[ItemRequest(product_id=i.product_id, quantity=i.quantity) for i in command.items],
    )
