"""ReminderPreferenceService -- 用户对单个任务的提醒偏好

lead_minutes 为正整数或 None（清除）。清除偏好时，该用户在此任务上的
PENDING delivery 一并置为 SUPERSEDED。
"""

import structlog

from .exceptions import InvalidArgumentError, TaskNotFoundError
from .models.delivery import UserContext
from .models.enums import DeliveryStatus
from .models.facts import ReminderPreference
from .store.protocols import DeliveryStore, ReminderPreferenceStore, TaskFactStore
from .timeutil import Clock, utc_now

log = structlog.get_logger()


class ReminderPreferenceService:
    """提醒偏好读写"""

    def __init__(
        self,
        task_facts: TaskFactStore,
        preferences: ReminderPreferenceStore,
        delivery_store: DeliveryStore,
        clock: Clock = utc_now,
    ) -> None:
        self._task_facts = task_facts
        self._preferences = preferences
        self._deliveries = delivery_store
        self._clock = clock

    async def set_preference(
        self,
        task_id: str,
        context: UserContext,
        lead_minutes: int | None,
    ) -> None:
        """写入或清除偏好

        Raises:
            InvalidArgumentError: lead_minutes 非正
            TaskNotFoundError: 任务不存在或当前上下文不可见
        """
        if lead_minutes is not None and lead_minutes <= 0:
            raise InvalidArgumentError("Reminder minutes must be positive or null")

        task = await self._task_facts.get_task(task_id, context.organization_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        previous = await self._preferences.get_preference(task_id, context.user_id)
        await self._preferences.upsert_preference(
            ReminderPreference(
                task_id=task_id,
                user_id=context.user_id,
                lead_minutes=lead_minutes,
            )
        )

        previous_minutes = previous.lead_minutes if previous else None
        if previous_minutes == lead_minutes:
            return

        # 提前量变化：旧 delivery 作废，下次调度 pass 按新偏好重建
        active = await self._deliveries.get_active_delivery(task_id, context.user_id)
        if active is not None:
            await self._deliveries.transition_status(
                active.delivery_id,
                DeliveryStatus.PENDING,
                DeliveryStatus.SUPERSEDED,
                self._clock(),
            )

        log.info(
            "reminder_preference_updated",
            task_id=task_id,
            user_id=context.user_id,
            lead_minutes=lead_minutes,
        )

    async def get_preference(self, task_id: str, context: UserContext) -> int | None:
        pref = await self._preferences.get_preference(task_id, context.user_id)
        return pref.lead_minutes if pref else None
