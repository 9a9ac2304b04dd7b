"""TaskReminderService -- 组装调度器、查询服务、状态机、偏好服务

每个请求构建一次，无进程内共享可变状态；唯一共享资源是 StoreGroup 背后的数据库。
"""

from datetime import timedelta

from tasknudge.core.models import Delivery, UserContext
from tasknudge.core.preferences import ReminderPreferenceService
from tasknudge.core.query import DeliveryQueryService
from tasknudge.core.scheduler import DeliveryScheduler
from tasknudge.core.state_machine import DeliveryStateMachine
from tasknudge.core.store import StoreGroup
from tasknudge.core.timeutil import Clock, utc_now


class TaskReminderService:
    """任务提醒业务服务"""

    def __init__(self, store_group: StoreGroup, clock: Clock = utc_now) -> None:
        self._stores = store_group
        self.scheduler = DeliveryScheduler(
            store_group.delivery_store,
            store_group.task_fact_store,
            store_group.preference_store,
            clock=clock,
        )
        self.queries = DeliveryQueryService(
            store_group.delivery_store,
            self.scheduler,
            clock=clock,
        )
        self.state_machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        self.preferences = ReminderPreferenceService(
            store_group.task_fact_store,
            store_group.preference_store,
            store_group.delivery_store,
            clock=clock,
        )

    async def due_now(
        self,
        context: UserContext,
        exclude_push_sent: bool = False,
    ) -> list[Delivery]:
        return await self.queries.due_now(context, exclude_push_sent=exclude_push_sent)

    async def upcoming(self, context: UserContext, window_minutes: int) -> list[Delivery]:
        return await self.queries.upcoming(context, timedelta(minutes=window_minutes))

    async def acknowledge(self, delivery_id: str, context: UserContext) -> Delivery:
        return await self.state_machine.acknowledge(delivery_id, context)

    async def dismiss(self, delivery_id: str, context: UserContext) -> Delivery:
        return await self.state_machine.dismiss(delivery_id, context)

    async def snooze(
        self,
        delivery_id: str,
        context: UserContext,
        snooze_minutes: int,
    ) -> Delivery:
        return await self.state_machine.snooze(delivery_id, context, snooze_minutes)
