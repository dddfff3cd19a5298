"""领域异常 -> HTTP 响应映射

错误响应体统一为 {"error": {"code": ..., "message": ...}}。
"""

import structlog
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse
from tasktree.core.exceptions import (
    DecompositionFailedError,
    DepthExceededError,
    InvalidParentError,
    InvalidPlanError,
    PersistenceError,
    QuotaExceededError,
    ServiceUnavailableError,
    TaskNotFoundError,
    TaskTreeCorruptedError,
    TaskTreeError,
)

log = structlog.get_logger()


class AuthenticationRequiredError(TaskTreeError):
    """请求未携带调用方身份"""

    code = "UNAUTHENTICATED"

    def __init__(self) -> None:
        super().__init__("X-Owner-Id header is required")


STATUS_BY_ERROR: dict[type[TaskTreeError], int] = {
    AuthenticationRequiredError: 401,
    TaskNotFoundError: 404,
    InvalidParentError: 400,
    InvalidPlanError: 400,
    DepthExceededError: 422,
    DecompositionFailedError: 422,
    QuotaExceededError: 402,
    ServiceUnavailableError: 503,
    TaskTreeCorruptedError: 500,
    PersistenceError: 500,
}


def error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    """构造统一错误响应"""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


def status_for(exc: TaskTreeError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def handle_tasktree_error(request: Request, exc: TaskTreeError) -> JSONResponse:
    status_code = status_for(exc)
    extra = {}
    if isinstance(exc, DecompositionFailedError):
        extra["reason"] = exc.reason
    if isinstance(exc, QuotaExceededError):
        extra["remaining"] = exc.remaining

    if status_code >= 500:
        log.error("request_failed", code=exc.code, error=exc.message)
    else:
        log.info("request_rejected", code=exc.code, status_code=status_code)
    return error_response(status_code, exc.code, exc.message, **extra)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskTreeError, handle_tasktree_error)
