"""提醒偏好路由

GET /api/tasks/{task_id}/reminder-preference: 查询当前用户对任务的提醒偏好
PUT /api/tasks/{task_id}/reminder-preference: 设置（正整数分钟）或清除（null）
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from tasknudge.core.exceptions import DeliveryError

from ..deps import get_store_group, get_user_context
from ..errors import delivery_error_response
from ..services.reminder_service import TaskReminderService

router = APIRouter()


class ReminderPreferenceBody(BaseModel):
    """提醒偏好"""

    lead_minutes: int | None = None


@router.get(
    "/api/tasks/{task_id}/reminder-preference",
    response_model=ReminderPreferenceBody,
)
async def get_reminder_preference(
    task_id: str,
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    service = TaskReminderService(store_group)
    lead_minutes = await service.preferences.get_preference(task_id, context)
    return ReminderPreferenceBody(lead_minutes=lead_minutes)


@router.put("/api/tasks/{task_id}/reminder-preference")
async def put_reminder_preference(
    task_id: str,
    body: ReminderPreferenceBody,
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    """设置或清除提醒偏好；清除时当前 PENDING 提醒一并失效"""
    service = TaskReminderService(store_group)
    try:
        await service.preferences.set_preference(task_id, context, body.lead_minutes)
    except DeliveryError as e:
        return delivery_error_response(e)

    return ReminderPreferenceBody(lead_minutes=body.lead_minutes)
