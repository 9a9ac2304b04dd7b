"""Cron 推送路由

POST /api/cron/task-reminders: 由外部定时器触发的后台推送 pass。
安全：需要 Authorization: Bearer <TASKNUDGE_CRON_SECRET>。
- 500: 未配置 cron 密钥
- 401: 密钥不匹配
"""

import secrets

import structlog
from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel
from tasknudge.core.config import get_cron_secret

from ..deps import get_push_sender, get_store_group
from ..errors import error_response
from ..services.push_dispatch import PushDispatchService

log = structlog.get_logger()

router = APIRouter()


class DispatchResponse(BaseModel):
    """推送 pass 统计"""

    organizations: list[str]
    created: int
    sent: int
    failed: int


@router.post("/api/cron/task-reminders")
async def dispatch_task_reminders(
    org: str | None = Query(default=None, description="仅处理指定组织"),
    authorization: str | None = Header(default=None),
    store_group=Depends(get_store_group),
    push_sender=Depends(get_push_sender),
):
    cron_secret = get_cron_secret()
    if cron_secret is None:
        log.error("cron_secret_not_configured")
        return error_response(500, "CRON_NOT_CONFIGURED", "Cron secret not configured")

    if not authorization or not secrets.compare_digest(
        authorization, f"Bearer {cron_secret}"
    ):
        log.warning("cron_unauthorized")
        return error_response(401, "UNAUTHORIZED", "Invalid cron secret")

    service = PushDispatchService(store_group, push_sender)
    result = await service.dispatch(org)
    return DispatchResponse(
        organizations=result.organizations,
        created=result.created,
        sent=result.sent,
        failed=result.failed,
    )
