"""任务提醒路由

GET  /api/task-reminders/due-now: 已到期提醒（先执行调度 pass）
GET  /api/task-reminders/upcoming: 窗口内即将到期提醒
POST /api/task-reminders/acknowledge: 确认提醒（幂等）
POST /api/task-reminders/dismiss: 忽略提醒（幂等）
POST /api/task-reminders/snooze: 推迟提醒
- 400: 参数非法（snooze_minutes <= 0 等）
- 404: 提醒不存在或不属于当前用户
- 409: 提醒已处于终态
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from tasknudge.core.config import UPCOMING_WINDOW_MINUTES
from tasknudge.core.exceptions import DeliveryError
from tasknudge.core.models import Delivery

from ..deps import get_store_group, get_user_context
from ..errors import delivery_error_response
from ..services.reminder_service import TaskReminderService

router = APIRouter()


class ReminderItem(BaseModel):
    """提醒列表项"""

    id: str
    task_id: str
    task_title: str
    task_due_at: str
    remind_at: str


class ReminderListResponse(BaseModel):
    """提醒列表响应"""

    reminders: list[ReminderItem]


class DeliveryActionRequest(BaseModel):
    """acknowledge / dismiss 请求体"""

    delivery_id: str


class SnoozeRequest(BaseModel):
    """snooze 请求体"""

    delivery_id: str
    snooze_minutes: int


class DeliveryActionResponse(BaseModel):
    """状态变更响应"""

    id: str
    status: str


class SnoozeResponse(BaseModel):
    """snooze 响应：返回替代提醒"""

    id: str
    status: str
    superseded_id: str
    snoozed_to: str


def _to_item(delivery: Delivery) -> ReminderItem:
    return ReminderItem(
        id=delivery.delivery_id,
        task_id=delivery.task_id,
        task_title=delivery.task_title,
        task_due_at=delivery.task_due_at.isoformat(),
        remind_at=delivery.remind_at.isoformat(),
    )


@router.get("/api/task-reminders/due-now", response_model=ReminderListResponse)
async def due_now(
    exclude_push_sent: bool = Query(default=False, description="排除已推送的提醒"),
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    """查询已到期提醒，按 remind_at 正序"""
    service = TaskReminderService(store_group)
    deliveries = await service.due_now(context, exclude_push_sent=exclude_push_sent)
    return ReminderListResponse(reminders=[_to_item(d) for d in deliveries])


@router.get("/api/task-reminders/upcoming", response_model=ReminderListResponse)
async def upcoming(
    window_minutes: int = Query(
        default=UPCOMING_WINDOW_MINUTES,
        ge=1,
        description="查询窗口（分钟），默认 24 小时",
    ),
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    """查询窗口内即将到期的提醒"""
    service = TaskReminderService(store_group)
    deliveries = await service.upcoming(context, window_minutes)
    return ReminderListResponse(reminders=[_to_item(d) for d in deliveries])


@router.post("/api/task-reminders/acknowledge")
async def acknowledge(
    body: DeliveryActionRequest,
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    """确认提醒，重复提交不报错"""
    service = TaskReminderService(store_group)
    try:
        delivery = await service.acknowledge(body.delivery_id, context)
    except DeliveryError as e:
        return delivery_error_response(e)

    return DeliveryActionResponse(id=delivery.delivery_id, status=delivery.status.value)


@router.post("/api/task-reminders/dismiss")
async def dismiss(
    body: DeliveryActionRequest,
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    """忽略提醒，重复提交不报错"""
    service = TaskReminderService(store_group)
    try:
        delivery = await service.dismiss(body.delivery_id, context)
    except DeliveryError as e:
        return delivery_error_response(e)

    return DeliveryActionResponse(id=delivery.delivery_id, status=delivery.status.value)


@router.post("/api/task-reminders/snooze")
async def snooze(
    body: SnoozeRequest,
    context=Depends(get_user_context),
    store_group=Depends(get_store_group),
):
    """推迟提醒；snooze_minutes <= 0 在访问存储前被拒绝"""
    service = TaskReminderService(store_group)
    try:
        replacement = await service.snooze(body.delivery_id, context, body.snooze_minutes)
    except DeliveryError as e:
        return delivery_error_response(e)

    return SnoozeResponse(
        id=replacement.delivery_id,
        status=replacement.status.value,
        superseded_id=body.delivery_id,
        snoozed_to=replacement.remind_at.isoformat(),
    )
