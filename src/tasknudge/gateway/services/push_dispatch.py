"""PushDispatchService -- cron 驱动的后台推送

用户没有打开应用时也能收到提醒：
1. 对组织执行一次调度 pass（为所有有偏好的用户物化 delivery）
2. 查询已到期且尚未推送的 PENDING delivery
3. 逐条交给 PushSender，成功后记录 push_sent_at
单条推送失败只计数，下一次 cron 会重试。
"""

from dataclasses import dataclass, field

import structlog
from tasknudge.core.models import Delivery
from tasknudge.core.scheduler import DeliveryScheduler
from tasknudge.core.store import StoreGroup
from tasknudge.core.timeutil import Clock, utc_now
from tasknudge.push import PushError, PushPayload, PushSender

log = structlog.get_logger()


@dataclass
class DispatchResult:
    """一次推送 pass 的统计"""

    organizations: list[str] = field(default_factory=list)
    created: int = 0
    sent: int = 0
    failed: int = 0


def build_push_payload(delivery: Delivery) -> PushPayload:
    """由 delivery 快照构建推送 payload"""
    return PushPayload(
        type="task-reminder",
        delivery_id=delivery.delivery_id,
        task_id=delivery.task_id,
        task_title=delivery.task_title or None,
        task_due_date=delivery.task_due_at.isoformat(),
    )


class PushDispatchService:
    """推送分发服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        sender: PushSender,
        clock: Clock = utc_now,
    ) -> None:
        self._stores = store_group
        self._sender = sender
        self._clock = clock
        self._scheduler = DeliveryScheduler(
            store_group.delivery_store,
            store_group.task_fact_store,
            store_group.preference_store,
            clock=clock,
        )

    async def dispatch(self, organization_id: str | None = None) -> DispatchResult:
        """对单个组织或所有有待提醒任务的组织执行推送 pass"""
        if organization_id:
            organizations = [organization_id]
        else:
            organizations = (
                await self._stores.task_fact_store.list_organizations_with_open_tasks()
            )

        result = DispatchResult(organizations=organizations)
        for org_id in organizations:
            await self._dispatch_organization(org_id, result)

        log.info(
            "push_dispatch_completed",
            organizations=len(organizations),
            created=result.created,
            sent=result.sent,
            failed=result.failed,
        )
        return result

    async def _dispatch_organization(self, organization_id: str, result: DispatchResult) -> None:
        result.created += await self._scheduler.ensure_delivery_records_for_organization(
            organization_id
        )
        now = self._clock()
        deliveries = await self._stores.delivery_store.list_pending_for_organization(
            organization_id,
            remind_to=now,
            exclude_push_sent=True,
        )
        for delivery in deliveries:
            try:
                await self._sender.send(delivery.user_id, build_push_payload(delivery))
            except PushError as e:
                result.failed += 1
                log.warning(
                    "push_send_failed",
                    delivery_id=delivery.delivery_id,
                    user_id=delivery.user_id,
                    error=str(e),
                    recoverable=e.recoverable,
                )
                continue
            await self._stores.delivery_store.mark_push_sent(delivery.delivery_id, now)
            result.sent += 1
