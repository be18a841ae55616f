"""
Inventory Service — FastAPI エントリーポイント

商品情報 (価格・在庫数) の読み取り API。
「商品が存在しない」は {"code": "NOT_FOUND"} 付きの 404 で返し、
呼び出し側がルート未定義などの 404 と区別できるようにする。
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from . import queries
from .config import Settings
from .db import create_session_factory, init_schema

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "session_factory", None) is not None:
        yield
        return

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine, app.state.session_factory = create_session_factory(settings.database_url)
    await init_schema(engine)
    try:
        yield
    finally:
        await engine.dispose()


router = APIRouter()


# ── Query Endpoints (Read 側) ────────────────────


@router.get("/queries/products")
async def query_list_products(request: Request, category_id: str | None = None):
    """全商品を名前順で取得（category_id で絞り込み可）"""
    async with request.app.state.session_factory() as session:
        found = await queries.list_products(session, category_id)
    return [p.model_dump(mode="json") for p in found]


@router.get("/queries/products/{product_id}")
async def query_get_product(product_id: str, request: Request):
    """指定商品を取得（注文サービスの価格・在庫確認に使われる）"""
    async with request.app.state.session_factory() as session:
        product = await queries.get_product(session, product_id)
    if not product:
        logger.info("Product %s not found", product_id)
        return JSONResponse(
            status_code=404,
            content={
                "code": "NOT_FOUND",
                "message": f"Product with ID {product_id} not found",
            },
        )
    return product.model_dump(mode="json")


@router.get("/health")
async def health():
    return {"status": "ok", "service": "inventory-service"}


def create_app(session_factory: sessionmaker | None = None) -> FastAPI:
    app = FastAPI(title="Inventory Service", lifespan=lifespan)
    if session_factory is not None:
        app.state.session_factory = session_factory
    app.include_router(router)
    return app


app = create_app()
