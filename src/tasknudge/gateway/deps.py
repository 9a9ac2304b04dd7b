"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 实例与用户上下文

Store / PushSender 实例通过 app.state 管理，在 lifespan 中初始化/清理。
认证由外部完成，用户上下文从上游注入的请求头读取。
"""

from fastapi import Header, HTTPException, Request
from tasknudge.core.models import UserContext
from tasknudge.core.store import StoreGroup


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_push_sender(request: Request):
    """从 app.state 获取 PushSender 实例"""
    return request.app.state.push_sender


def get_user_context(
    x_user_id: str | None = Header(default=None),
    x_organization_id: str | None = Header(default=None),
    x_person_id: str | None = Header(default=None),
) -> UserContext:
    """从 X-User-Id / X-Organization-Id / X-Person-Id 请求头构建用户上下文"""
    if not x_user_id or not x_organization_id:
        raise HTTPException(
            status_code=401,
            detail={
                "code": "UNAUTHENTICATED",
                "message": "Missing user or organization context",
            },
        )
    return UserContext(
        user_id=x_user_id,
        organization_id=x_organization_id,
        person_id=x_person_id or None,
    )
