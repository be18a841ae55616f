"""
Order Service — FastAPI エントリーポイント

CQRS パターンに従い、Command (POST) と Query (GET) のエンドポイントを分離。
Gateway から呼ばれる内部 API で、エラーは RPC コード付き JSON で返す。

依存するコンポーネント (リポジトリ・在庫クライアント・イベント発行) は
create_app で受け取るか、lifespan で環境変数から組み立てて app.state に置く。
モジュールのグローバル変数には持たない。
"""

import logging
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError

from . import commands, errors
from .aggregator import OrderAggregator
from .config import Settings
from .db import create_session_factory, init_schema
from .events import EventPublisher
from .inventory_client import InventoryGateway
from .models import CreateOrderCommand, UpdateStatusCommand
from .repository import OrderRepository

logger = logging.getLogger(__name__)

# 呼び出し元 (Gateway) の残り時間 (秒)。注文作成の在庫確認をこの時間で打ち切る。
DEADLINE_HEADER = "X-Request-Timeout"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "repository", None) is not None:
        yield
        return

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine, session_factory = create_session_factory(settings.database_url)
    await init_schema(engine)
    inventory_http = httpx.AsyncClient(base_url=settings.inventory_service_url)
    redis_pool = (
        aioredis.from_url(settings.redis_url, decode_responses=True)
        if settings.redis_url else None
    )

    app.state.repository = OrderRepository(session_factory)
    app.state.aggregator = OrderAggregator(
        InventoryGateway(inventory_http, timeout=settings.inventory_timeout)
    )
    app.state.publisher = EventPublisher(redis_pool)
    logger.info("Order service ready (inventory at %s)", settings.inventory_service_url)

    try:
        yield
    finally:
        await inventory_http.aclose()
        if redis_pool is not None:
            await redis_pool.aclose()
        await engine.dispose()


router = APIRouter()


# ── Command Endpoints (Write 側) ─────────────────

@router.post("/commands/orders", status_code=201)
async def cmd_create_order(
    req: CreateOrderCommand,
    request: Request,
    deadline: float | None = Header(default=None, alias=DEADLINE_HEADER),
):
    """注文作成コマンド"""
    state = request.app.state
    order = await commands.create_order(
        state.repository, state.aggregator, state.publisher, req, deadline=deadline,
    )
    return order.model_dump(mode="json")


@router.post("/commands/orders/{order_id}/status")
async def cmd_update_status(order_id: str, req: UpdateStatusCommand, request: Request):
    """注文ステータス変更コマンド"""
    state = request.app.state
    order = await commands.update_order_status(
        state.repository, state.publisher, order_id, req.status,
    )
    return order.model_dump(mode="json")


# ── Query Endpoints (Read 側) ────────────────────

@router.get("/queries/orders")
async def query_list_orders(
    request: Request,
    user_id: str = "",
    limit: int | None = None,
    offset: int | None = None,
):
    """ユーザーの注文一覧（新しい順）"""
    page = await request.app.state.repository.list_by_owner(user_id, limit, offset)
    return page.model_dump(mode="json")


@router.get("/queries/orders/{order_id}")
async def query_get_order(order_id: str, request: Request):
    order = await request.app.state.repository.get_by_id(order_id)
    return order.model_dump(mode="json")


@router.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}


def create_app(
    repository: OrderRepository | None = None,
    aggregator: OrderAggregator | None = None,
    publisher: EventPublisher | None = None,
) -> FastAPI:
    app = FastAPI(title="Order Service", lifespan=lifespan)
    if repository is not None:
        app.state.repository = repository
        app.state.aggregator = aggregator
        app.state.publisher = publisher or EventPublisher(None)

    app.include_router(router)
    app.add_exception_handler(errors.OrderError, errors.handle_order_error)
    app.add_exception_handler(RequestValidationError, errors.handle_request_validation_error)
    app.add_exception_handler(Exception, errors.handle_unexpected_error)
    return app


app = create_app()
