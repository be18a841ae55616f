"""
Order Service — 注文ステータス

状態:
    pending    (作成時の初期状態)
    completed
    cancelled
    failed

遷移ルール:
    4 つの状態のいずれかであれば、どの状態からでも遷移できる。
    completed → pending のような「再オープン」も拒否しない。
    拒否するのは 4 つ以外の値だけ。
"""

import logging
from enum import Enum

from .errors import InvalidStatusTarget

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


def transition(current: OrderStatus, requested: str) -> OrderStatus:
    """
    requested が有効な状態なら新しい状態を返す。

    大文字小文字の正規化はエッジ (gateway) の責務なので、ここでは完全一致で判定する。
    """
    try:
        target = OrderStatus(requested)
    except ValueError:
        raise InvalidStatusTarget(str(requested), OrderStatus.values()) from None

    logger.debug("Status transition %s -> %s", current.value, target.value)
    return target
