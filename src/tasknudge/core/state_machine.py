"""DeliveryStateMachine -- acknowledge / dismiss / snooze

状态：PENDING -> {ACKNOWLEDGED, DISMISSED, SUPERSEDED}，三者均为终态。
所有操作先做租户校验：不属于当前用户/组织的 delivery 视为不存在。
snooze 的 supersede + 新建在同一事务内完成。
"""

from datetime import timedelta

import structlog

from .exceptions import (
    DeliveryConflictError,
    DeliveryNotFoundError,
    DeliveryStatusConflictError,
    InvalidArgumentError,
    InvalidDeliveryStateError,
)
from .models.delivery import Delivery, UserContext
from .models.enums import DeliveryStatus, validate_transition
from .scheduler import build_delivery
from .store.protocols import DeliveryStore
from .timeutil import Clock, utc_now

log = structlog.get_logger()


class DeliveryStateMachine:
    """Delivery 状态流转服务"""

    def __init__(self, delivery_store: DeliveryStore, clock: Clock = utc_now) -> None:
        self._deliveries = delivery_store
        self._clock = clock

    async def acknowledge(self, delivery_id: str, context: UserContext) -> Delivery:
        """确认提醒；重复确认幂等"""
        return await self._finish(delivery_id, context, DeliveryStatus.ACKNOWLEDGED)

    async def dismiss(self, delivery_id: str, context: UserContext) -> Delivery:
        """忽略提醒；重复忽略幂等"""
        return await self._finish(delivery_id, context, DeliveryStatus.DISMISSED)

    async def snooze(
        self,
        delivery_id: str,
        context: UserContext,
        snooze_minutes: int,
    ) -> Delivery:
        """推迟提醒：原 delivery 置为 SUPERSEDED，新建一条更晚的 PENDING delivery

        新 remind_at = min(now + snooze_minutes, task_due_at)，不会越过任务截止时间。

        Returns:
            新建的 delivery

        Raises:
            InvalidArgumentError: snooze_minutes <= 0（不访问存储）
            DeliveryNotFoundError: delivery 不存在或不属于当前上下文
            InvalidDeliveryStateError: 非 PENDING、任务已过期或目标时间已被占用
        """
        if isinstance(snooze_minutes, bool) or not isinstance(snooze_minutes, int):
            raise InvalidArgumentError("Snooze minutes must be an integer")
        if snooze_minutes <= 0:
            raise InvalidArgumentError("Snooze minutes must be positive")

        delivery = await self._load(delivery_id, context)
        if not validate_transition(delivery.status, DeliveryStatus.SUPERSEDED):
            raise InvalidDeliveryStateError(
                delivery_id,
                delivery.status.value,
                f"Reminder {delivery_id} is {delivery.status.value} and cannot be snoozed",
            )

        now = self._clock()
        if delivery.task_due_at <= now:
            raise InvalidDeliveryStateError(
                delivery_id,
                delivery.status.value,
                "Task is already overdue and cannot be snoozed",
            )

        new_remind_at = min(now + timedelta(minutes=snooze_minutes), delivery.task_due_at)
        replacement = build_delivery(
            delivery.task_id,
            UserContext(
                user_id=delivery.user_id,
                organization_id=delivery.organization_id,
                person_id=delivery.person_id,
            ),
            delivery.task_title,
            delivery.task_due_at,
            new_remind_at,
            now,
        )

        try:
            await self._deliveries.supersede_and_insert(delivery_id, replacement, now)
        except DeliveryStatusConflictError as e:
            current = await self._deliveries.get_delivery(delivery_id)
            status = current.status.value if current else "UNKNOWN"
            raise InvalidDeliveryStateError(delivery_id, status) from e
        except DeliveryConflictError as e:
            raise InvalidDeliveryStateError(
                delivery_id,
                delivery.status.value,
                "Reminder is already snoozed until the task due date",
            ) from e

        log.info(
            "delivery_snoozed",
            delivery_id=delivery_id,
            new_delivery_id=replacement.delivery_id,
            task_id=delivery.task_id,
            user_id=context.user_id,
            remind_at=new_remind_at.isoformat(),
            capped=new_remind_at == delivery.task_due_at,
        )
        return replacement

    async def _finish(
        self,
        delivery_id: str,
        context: UserContext,
        target: DeliveryStatus,
    ) -> Delivery:
        delivery = await self._load(delivery_id, context)
        if delivery.status == target:
            return delivery
        if not validate_transition(delivery.status, target):
            raise InvalidDeliveryStateError(delivery_id, delivery.status.value)

        now = self._clock()
        updated = await self._deliveries.transition_status(
            delivery_id, DeliveryStatus.PENDING, target, now
        )
        if not updated:
            # 并发修改：重新读取后判定
            delivery = await self._load(delivery_id, context)
            if delivery.status == target:
                return delivery
            raise InvalidDeliveryStateError(delivery_id, delivery.status.value)

        log.info(
            "delivery_status_changed",
            delivery_id=delivery_id,
            task_id=delivery.task_id,
            user_id=context.user_id,
            from_status=delivery.status.value,
            to_status=target.value,
        )
        return delivery.model_copy(update={"status": target, "updated_at": now})

    async def _load(self, delivery_id: str, context: UserContext) -> Delivery:
        if not delivery_id or not delivery_id.strip():
            raise InvalidArgumentError("Delivery id is required")
        delivery = await self._deliveries.get_delivery_for_context(delivery_id, context)
        if delivery is None:
            raise DeliveryNotFoundError(delivery_id)
        return delivery
