"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求生成 request_id，连同调用方 owner_id、任务路径的 trace_id
绑定到 structlog contextvars，下游 service / store 日志自动携带。
请求结束时记录匹配到的路由模板（如 /api/tasks/{task_id}），便于按接口聚合。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

from .trace_mw import trace_id_for_path


def _route_template(request: Request) -> str | None:
    # 路由匹配后 scope 中才有 route；未匹配（404）时为 None
    route = request.scope.get("route")
    return getattr(route, "path", None)


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件 -- request_id / owner_id / trace_id 上下文"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        start_time = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        owner_id = request.headers.get("X-Owner-Id")
        if owner_id:
            structlog.contextvars.bind_contextvars(owner_id=owner_id)
        trace_id = trace_id_for_path(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)

        log = structlog.get_logger()
        await log.ainfo("request_started")

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_failed",
                route=_route_template(request),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )
            raise

        await log.ainfo(
            "request_completed",
            route=_route_template(request),
            status_code=response.status_code,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

        response.headers["X-Request-ID"] = request_id
        return response
