"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求生成 request_id，绑定到 structlog contextvars，
并记录耗时，便于观察客户端轮询频率与调度 pass 开销。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

# 健康探针调用频繁，降为 debug 级别
_QUIET_PATHS = ("/health", "/ready")


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件 -- 为每个请求生成 request_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(ULID())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        log = structlog.get_logger()
        quiet = request.url.path in _QUIET_PATHS
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = int((time.monotonic() - start) * 1000)
        if quiet:
            log.debug("request_completed", status_code=response.status_code)
        else:
            await log.ainfo(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response
