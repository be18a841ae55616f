"""
Gateway (エッジ API)

外部の HTTP クライアントが直接触る唯一のサービス。
リクエストを Inventory Service / Order Service に転送し、
下流のエラーを RPC コードに従って HTTP レスポンスに変換する。

  ┌──────────┐     ┌─────────┐     ┌─────────────────┐
  │  Client  │────▶│ Gateway │────▶│ Order Service   │──┐
  │          │     │         │────▶│ Inventory Svc   │◀─┘ (価格・在庫の確認)
  └──────────┘     └─────────┘     └─────────────────┘

  - 下流への接続は起動時に並列で確立する (clients.connect)
  - ステータス文字列の大文字小文字の正規化はここで行う
  - 5xx のレスポンスに下流の内部メッセージは含めない
"""

import logging
from collections.abc import Awaitable
from contextlib import asynccontextmanager
from urllib.parse import quote

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import errors
from .clients import ServiceClients, connect
from .config import Settings
from .errors import DownstreamFailed, error_response

logger = logging.getLogger(__name__)

CREATE_ORDER_TIMEOUT = 10.0
DEFAULT_TIMEOUT = 5.0

# 注文作成の残り時間を Order Service に渡す。
# 保存と応答の分だけ余裕を引き、下流が先に DEADLINE_EXCEEDED を返すようにする。
DEADLINE_HEADER = "X-Request-Timeout"
DEADLINE_MARGIN = 1.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "clients", None) is not None:
        yield
        return

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.state.clients = await connect(
        httpx.AsyncClient(base_url=settings.inventory_service_url),
        httpx.AsyncClient(base_url=settings.order_service_url),
        settings.connect_timeout,
    )
    try:
        yield
    finally:
        await app.state.clients.aclose()


# ── Request Models ───────────────────────────────
# 中身の検証は Order Service が行う。ここでは型だけを見る。


class OrderItemInput(BaseModel):
    product_id: str = ""
    quantity: int = 0


class PlaceOrderRequest(BaseModel):
    user_id: str = ""
    items: list[OrderItemInput] = Field(default_factory=list)


class UpdateStatusRequest(BaseModel):
    status: str = ""


async def _send(
    request_info: str,
    call: Awaitable[httpx.Response],
    expected: int = 200,
) -> httpx.Response:
    try:
        resp = await call
    except httpx.HTTPError as e:
        raise DownstreamFailed(errors.transport_error(e, request_info)) from e
    if resp.status_code != expected:
        raise DownstreamFailed(errors.downstream_error(resp, request_info))
    logger.info("API Gateway: %s successful", request_info)
    return resp


def _json(resp: httpx.Response, request_info: str):
    try:
        return resp.json()
    except ValueError:
        logger.warning("API Gateway: non-JSON success body for %s", request_info)
        raise DownstreamFailed(
            error_response(502, "UNAVAILABLE", "Failed to communicate with downstream service")
        ) from None


def _clients(request: Request) -> ServiceClients:
    return request.app.state.clients


router = APIRouter()


# ── 商品 ─────────────────────────────────────────


@router.get("/api/products")
async def get_products(request: Request, category_id: str | None = None):
    params = {"category_id": category_id} if category_id else None
    resp = await _send(
        "ListProducts",
        _clients(request).inventory.get(
            "/queries/products", params=params, timeout=DEFAULT_TIMEOUT
        ),
    )
    return _json(resp, "ListProducts")


@router.get("/api/products/{product_id}")
async def get_product(product_id: str, request: Request):
    request_info = f"GetProduct (ID: {product_id})"
    resp = await _send(
        request_info,
        _clients(request).inventory.get(
            f"/queries/products/{quote(product_id, safe='')}", timeout=DEFAULT_TIMEOUT
        ),
    )
    return _json(resp, request_info)


# ── 注文 ─────────────────────────────────────────


@router.post("/api/orders", status_code=201)
async def place_order(req: PlaceOrderRequest, request: Request):
    """注文を作成する（価格・在庫の確認は Order Service が行う）"""
    logger.info(
        "API Gateway: CreateOrder for user %s with %d items", req.user_id, len(req.items)
    )
    resp = await _send(
        "CreateOrder",
        _clients(request).order.post(
            "/commands/orders",
            json=req.model_dump(),
            headers={DEADLINE_HEADER: f"{CREATE_ORDER_TIMEOUT - DEADLINE_MARGIN:g}"},
            timeout=CREATE_ORDER_TIMEOUT,
        ),
        expected=201,
    )
    return _json(resp, "CreateOrder")


@router.get("/api/orders")
async def list_orders(
    request: Request,
    user_id: str = "",
    limit: int | None = None,
    offset: int | None = None,
):
    request_info = f"ListUserOrders (User: {user_id})"
    if not user_id:
        logger.info("API Gateway: Missing 'user_id' query parameter for %s", request_info)
        return error_response(400, "INVALID_ARGUMENT", "Missing 'user_id' query parameter")

    params = {"user_id": user_id}
    if limit is not None:
        params["limit"] = limit
    if offset is not None:
        params["offset"] = offset

    resp = await _send(
        request_info,
        _clients(request).order.get("/queries/orders", params=params, timeout=DEFAULT_TIMEOUT),
    )
    page = _json(resp, request_info)
    try:
        return {
            "data": page["orders"],
            "total": page["total"],
            "limit": page["limit"],
            "offset": page["offset"],
        }
    except (KeyError, TypeError):
        logger.warning("API Gateway: unexpected page shape for %s", request_info)
        return error_response(502, "UNAVAILABLE", "Failed to communicate with downstream service")


@router.get("/api/orders/{order_id}")
async def get_order(order_id: str, request: Request):
    request_info = f"GetOrderByID (ID: {order_id})"
    resp = await _send(
        request_info,
        _clients(request).order.get(
            f"/queries/orders/{quote(order_id, safe='')}", timeout=DEFAULT_TIMEOUT
        ),
    )
    return _json(resp, request_info)


@router.patch("/api/orders/{order_id}/status")
async def update_order_status(order_id: str, req: UpdateStatusRequest, request: Request):
    request_info = f"UpdateOrderStatus (ID: {order_id})"
    status = req.status.strip().lower()
    if not status:
        return error_response(400, "INVALID_ARGUMENT", "Status is required")

    resp = await _send(
        request_info,
        _clients(request).order.post(
            f"/commands/orders/{quote(order_id, safe='')}/status",
            json={"status": status},
            timeout=DEFAULT_TIMEOUT,
        ),
    )
    return _json(resp, request_info)


@router.get("/health")
async def health():
    return {"status": "ok", "service": "gateway"}


def create_app(clients: ServiceClients | None = None) -> FastAPI:
    app = FastAPI(title="API Gateway", lifespan=lifespan)
    if clients is not None:
        app.state.clients = clients
    # CORS 設定（ブラウザのフロントエンドからのアクセスを許可）
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.add_exception_handler(DownstreamFailed, errors.handle_downstream_failed)
    app.add_exception_handler(RequestValidationError, errors.handle_request_validation_error)
    return app


app = create_app()
