"""
Gateway — エラー変換 (サービス → エッジ)

下流サービスのエラー JSON に含まれる RPC コードで HTTP ステータスを決める。
メッセージ文字列では判定しない。

    RPC コード            →  HTTP
    ─────────────────────────────
    INVALID_ARGUMENT      →  400
    NOT_FOUND             →  404
    FAILED_PRECONDITION   →  409
    UNAVAILABLE           →  502
    DEADLINE_EXCEEDED     →  504
    INTERNAL / 不明       →  500

5xx のレスポンスには下流のメッセージを含めない。
"""

import logging

import httpx
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

EDGE_STATUS: dict[str, int] = {
    "INVALID_ARGUMENT": 400,
    "NOT_FOUND": 404,
    "FAILED_PRECONDITION": 409,
    "UNAVAILABLE": 502,
    "DEADLINE_EXCEEDED": 504,
    "INTERNAL": 500,
}

GENERIC_MESSAGES: dict[int, str] = {
    500: "Internal server error in downstream service",
    502: "Downstream service unavailable",
    504: "Downstream service timed out",
}


class DownstreamFailed(Exception):
    """下流呼び出しの失敗。response をそのままクライアントに返す。"""

    def __init__(self, response: JSONResponse) -> None:
        super().__init__(response.status_code)
        self.response = response


def error_response(status: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    content = {"error": message, "code": code}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status, content=content)


def downstream_error(resp: httpx.Response, request_info: str) -> JSONResponse:
    try:
        body = resp.json()
    except ValueError:
        body = None
    code = body.get("code") if isinstance(body, dict) else None

    if not isinstance(code, str):
        logger.warning(
            "Non-RPC error from downstream processing '%s': status %d",
            request_info, resp.status_code,
        )
        return error_response(502, "UNAVAILABLE", "Failed to communicate with downstream service")

    message = str(body.get("message", ""))
    logger.info("RPC error processing '%s': code=%s, msg=%s", request_info, code, message)

    if code not in EDGE_STATUS:
        return error_response(500, "INTERNAL", "An unexpected error occurred")

    status = EDGE_STATUS[code]
    if status >= 500:
        return error_response(status, code, GENERIC_MESSAGES[status])
    return error_response(status, code, message, body.get("details") or None)


def transport_error(exc: httpx.HTTPError, request_info: str) -> JSONResponse:
    logger.warning("Transport error processing '%s': %r", request_info, exc)
    if isinstance(exc, httpx.TimeoutException):
        return error_response(504, "DEADLINE_EXCEEDED", GENERIC_MESSAGES[504])
    return error_response(502, "UNAVAILABLE", "Failed to communicate with downstream service")


# ── FastAPI 例外ハンドラ ─────────────────────────


async def handle_downstream_failed(request: Request, exc: DownstreamFailed) -> JSONResponse:
    return exc.response


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid input: {location}: {first.get('msg', 'malformed request')}"
    logger.info("API Gateway: %s for %s %s", message, request.method, request.url.path)
    return error_response(400, "INVALID_ARGUMENT", message)
