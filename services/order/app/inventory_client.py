"""
Order Service — 在庫サービスクライアント (InventoryGateway)

「商品の正しい価格と在庫数を取得する」という 1 つの機能だけを提供する。
通信の詳細を隠し、リモートの失敗を 2 種類のローカルエラーに変換する。

    在庫サービスの応答                        →  結果
    ──────────────────────────────────────────────────────────
    200 + 正しい商品 JSON                     →  ProductSnapshot
    404 + {"code": "NOT_FOUND"}               →  InventoryNotFound
    タイムアウト / 通信エラー                 →  InventoryUnavailable
    200 + 小数 3 桁以上の価格                 →  InventoryUnavailable
    それ以外 (5xx, 形式不正の 404/200 など)   →  InventoryUnavailable

読み取り専用: 在庫の引き当て・減算は一切行わない。
"""

import asyncio
import logging
from urllib.parse import quote

import httpx

from .models import ProductSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0


class InventoryError(Exception):
    pass


class InventoryNotFound(InventoryError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} not found in inventory")
        self.product_id = product_id


class InventoryUnavailable(InventoryError):
    """message はログ専用。エッジのクライアントにはそのまま見せない。"""


class InventoryGateway:
    def __init__(self, client: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT):
        self.client = client
        self.timeout = timeout

    async def fetch(self, product_id: str) -> ProductSnapshot:
        """
        商品を 1 件取得する。

        呼び出し元の期限とは別に、1 回の呼び出しごとに timeout 秒で打ち切る。
        呼び出し元がキャンセルされた場合は CancelledError がそのまま伝播する。
        """
        path = f"/queries/products/{quote(product_id, safe='')}"
        logger.info("Calling inventory service for product %s", product_id)

        try:
            resp = await asyncio.wait_for(self.client.get(path), self.timeout)
        except asyncio.TimeoutError:
            raise InventoryUnavailable(
                f"inventory lookup for {product_id} timed out after {self.timeout}s"
            ) from None
        except httpx.HTTPError as e:
            raise InventoryUnavailable(
                f"inventory lookup for {product_id} failed: {e!r}"
            ) from e

        if resp.status_code == 404 and _error_code(resp) == "NOT_FOUND":
            logger.info("Product %s not found in inventory", product_id)
            raise InventoryNotFound(product_id)

        if resp.status_code != 200:
            raise InventoryUnavailable(
                f"inventory returned {resp.status_code} for {product_id}: {_error_message(resp)}"
            )

        try:
            snapshot = ProductSnapshot.model_validate(resp.json())
        except ValueError as e:
            raise InventoryUnavailable(
                f"malformed product payload for {product_id}: {e}"
            ) from e

        logger.info(
            "Product %s (%s) price %s, stock %d",
            snapshot.id, snapshot.name, snapshot.price, snapshot.stock,
        )
        return snapshot


def _error_body(resp: httpx.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_code(resp: httpx.Response) -> str | None:
    return _error_body(resp).get("code")


def _error_message(resp: httpx.Response) -> str:
    body = _error_body(resp)
    return str(body.get("message") or body.get("detail") or resp.text[:200])
