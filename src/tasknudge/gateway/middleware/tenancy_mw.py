"""TenancyMiddleware -- 绑定租户上下文到日志

从上游注入的 X-User-Id / X-Organization-Id 请求头读取用户与组织，
绑定到 structlog contextvars，贯穿调度、状态机与推送日志。
鉴权本身由 deps.get_user_context 完成，这里只做日志关联。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class TenancyMiddleware(BaseHTTPMiddleware):
    """租户日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        context = {}
        if user_id := request.headers.get("X-User-Id"):
            context["user_id"] = user_id
        if organization_id := request.headers.get("X-Organization-Id"):
            context["organization_id"] = organization_id

        if context:
            structlog.contextvars.bind_contextvars(**context)

        return await call_next(request)
