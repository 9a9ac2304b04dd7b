"""DeliveryQueryService -- due-now / upcoming 读接口

每个读操作先运行一次调度 pass，客户端轮询本身即可保持数据新鲜，
不依赖服务端定时器或框架缓存。
"""

from datetime import timedelta

from .models.delivery import Delivery, UserContext
from .scheduler import DeliveryScheduler
from .store.protocols import DeliveryStore
from .timeutil import Clock, utc_now


class DeliveryQueryService:
    """Delivery 读服务"""

    def __init__(
        self,
        delivery_store: DeliveryStore,
        scheduler: DeliveryScheduler,
        clock: Clock = utc_now,
    ) -> None:
        self._deliveries = delivery_store
        self._scheduler = scheduler
        self._clock = clock

    async def due_now(
        self,
        context: UserContext,
        exclude_push_sent: bool = False,
    ) -> list[Delivery]:
        """已到期的 PENDING delivery（remind_at <= now），最早到期优先

        Args:
            context: 用户上下文
            exclude_push_sent: 排除已通过推送通道发出的 delivery，避免页内重复提醒
        """
        await self._scheduler.ensure_delivery_records_for_upcoming(context)
        return await self._deliveries.list_pending(
            context,
            remind_to=self._clock(),
            exclude_push_sent=exclude_push_sent,
        )

    async def upcoming(self, context: UserContext, window: timedelta) -> list[Delivery]:
        """remind_at 落在 [now, now + window] 内的 PENDING delivery"""
        await self._scheduler.ensure_delivery_records_for_upcoming(context)
        now = self._clock()
        return await self._deliveries.list_pending(
            context,
            remind_from=now,
            remind_to=now + window,
        )
