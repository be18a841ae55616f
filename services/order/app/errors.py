"""
Order Service — エラー分類とエラー変換 (サービス間境界)

エラーはメッセージ文字列ではなく ErrorKind で分類する。
各例外クラスが自分の kind を持ち、FastAPI の例外ハンドラで
RPC コード付きの JSON レスポンスに変換される。

    ErrorKind              →  RpcCode              →  HTTP
    ─────────────────────────────────────────────────────────
    VALIDATION_FAILED      →  INVALID_ARGUMENT     →  400
    PRODUCT_NOT_FOUND      →  NOT_FOUND            →  404
    INSUFFICIENT_STOCK     →  FAILED_PRECONDITION  →  409
    DEPENDENCY_UNAVAILABLE →  UNAVAILABLE          →  503
    RECORD_NOT_FOUND       →  NOT_FOUND            →  404
    INVALID_STATUS_TARGET  →  INVALID_ARGUMENT     →  400
    DEADLINE_EXCEEDED      →  DEADLINE_EXCEEDED    →  504
    PERSISTENCE_FAILURE    →  INTERNAL             →  500
    (それ以外)             →  INTERNAL             →  500
"""

import logging
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    PRODUCT_NOT_FOUND = "product_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    RECORD_NOT_FOUND = "record_not_found"
    INVALID_STATUS_TARGET = "invalid_status_target"
    PERSISTENCE_FAILURE = "persistence_failure"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class RpcCode(str, Enum):
    """サービス間で受け渡すステータスコード（gRPC のコード体系に準拠）"""
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    UNAVAILABLE = "UNAVAILABLE"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    INTERNAL = "INTERNAL"


# ── エラー分類 ───────────────────────────────────


class OrderError(Exception):
    """注文サービスが呼び出し元に返すエラーの基底クラス"""

    kind: ErrorKind

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def is_fault(self) -> bool:
        """呼び出し側の誤りではなく、こちら側/依存先の障害かどうか"""
        return self.kind in (
            ErrorKind.DEPENDENCY_UNAVAILABLE,
            ErrorKind.PERSISTENCE_FAILURE,
            ErrorKind.DEADLINE_EXCEEDED,
        )


class ValidationFailed(OrderError):
    kind = ErrorKind.VALIDATION_FAILED


class ProductNotFound(OrderError):
    kind = ErrorKind.PRODUCT_NOT_FOUND

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product not found: {product_id}", product_id=product_id)
        self.product_id = product_id


class InsufficientStock(OrderError):
    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id} "
            f"(requested {requested}, available {available})",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class DependencyUnavailable(OrderError):
    """
    在庫サービスに到達できない、またはエラーを返した。

    cause はログ用。レスポンスには含めない。
    """

    kind = ErrorKind.DEPENDENCY_UNAVAILABLE

    def __init__(self, product_id: str, cause: str) -> None:
        super().__init__(
            f"Inventory service unavailable while checking product {product_id}",
            product_id=product_id,
        )
        self.product_id = product_id
        self.cause = cause


class RecordNotFound(OrderError):
    kind = ErrorKind.RECORD_NOT_FOUND

    def __init__(self, order_id: str, malformed: bool = False) -> None:
        super().__init__(
            f"Order with ID {order_id} not found",
            order_id=order_id,
            malformed=malformed,
        )
        self.order_id = order_id
        self.malformed = malformed


class InvalidStatusTarget(OrderError):
    kind = ErrorKind.INVALID_STATUS_TARGET

    def __init__(self, status: str, allowed: list[str]) -> None:
        super().__init__(
            f"Invalid target status: '{status}'. Valid values: {', '.join(allowed)}",
            status=status,
            allowed=allowed,
        )
        self.status = status


class PersistenceFailure(OrderError):
    kind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, operation: str) -> None:
        super().__init__(f"Failed to {operation}")
        self.operation = operation


class DeadlineExceeded(OrderError):
    """
    呼び出し元から渡された期限 (X-Request-Timeout) 内に在庫確認が終わらなかった。

    この時点では何も保存していない。
    """

    kind = ErrorKind.DEADLINE_EXCEEDED

    def __init__(self, budget: float) -> None:
        super().__init__(
            f"Order creation did not finish within {budget}s",
            budget=budget,
        )
        self.budget = budget


# ── エラー変換 (ErrorKind → RPC コード) ──────────

RPC_CODES: dict[ErrorKind, RpcCode] = {
    ErrorKind.VALIDATION_FAILED: RpcCode.INVALID_ARGUMENT,
    ErrorKind.PRODUCT_NOT_FOUND: RpcCode.NOT_FOUND,
    ErrorKind.INSUFFICIENT_STOCK: RpcCode.FAILED_PRECONDITION,
    ErrorKind.DEPENDENCY_UNAVAILABLE: RpcCode.UNAVAILABLE,
    ErrorKind.RECORD_NOT_FOUND: RpcCode.NOT_FOUND,
    ErrorKind.INVALID_STATUS_TARGET: RpcCode.INVALID_ARGUMENT,
    ErrorKind.PERSISTENCE_FAILURE: RpcCode.INTERNAL,
    ErrorKind.DEADLINE_EXCEEDED: RpcCode.DEADLINE_EXCEEDED,
}

HTTP_STATUS: dict[RpcCode, int] = {
    RpcCode.INVALID_ARGUMENT: 400,
    RpcCode.NOT_FOUND: 404,
    RpcCode.FAILED_PRECONDITION: 409,
    RpcCode.UNAVAILABLE: 503,
    RpcCode.DEADLINE_EXCEEDED: 504,
    RpcCode.INTERNAL: 500,
}

INTERNAL_MESSAGE = "Internal error in order service"


def to_rpc_status(exc: Exception) -> tuple[RpcCode, str, dict]:
    """
    例外を (RPC コード, メッセージ, 詳細) に変換する。

    未知の例外は INTERNAL とし、内部メッセージは外に出さない。
    """
    if not isinstance(exc, OrderError):
        return RpcCode.INTERNAL, INTERNAL_MESSAGE, {}
    code = RPC_CODES.get(exc.kind, RpcCode.INTERNAL)
    if code is RpcCode.INTERNAL:
        return code, INTERNAL_MESSAGE, {}
    return code, exc.message, exc.details


def rpc_error_response(exc: Exception) -> JSONResponse:
    code, message, details = to_rpc_status(exc)
    return JSONResponse(
        status_code=HTTP_STATUS[code],
        content={"code": code.value, "message": message, "details": details},
    )


# ── FastAPI 例外ハンドラ ─────────────────────────


async def handle_order_error(request: Request, exc: OrderError) -> JSONResponse:
    if isinstance(exc, DependencyUnavailable):
        logger.warning(
            "%s %s failed: %s (cause: %s)",
            request.method, request.url.path, exc.message, exc.cause,
        )
    elif exc.is_fault:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return rpc_error_response(exc)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """リクエストボディのスキーマ違反も INVALID_ARGUMENT として返す。"""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid input: {location}: {first.get('msg', 'malformed request')}"
    logger.info("%s %s rejected: %s", request.method, request.url.path, message)
    return rpc_error_response(ValidationFailed(message))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error processing %s %s", request.method, request.url.path)
    return rpc_error_response(exc)
