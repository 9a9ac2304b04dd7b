"""DeliveryScheduler -- 提醒 delivery 惰性物化

每次读操作前运行一次调度 pass：对上下文可见、有截止时间且有提醒偏好的任务，
计算 candidate remind_at = due_at - lead_minutes，并在不存在时原子创建 PENDING delivery。

幂等：同一输入连续调用两次，第二次不产生任何写入。
单个任务的读取/写入失败只跳过该任务，不中断整个 pass，也不抛给调用方。
"""

from datetime import datetime, timedelta

import structlog
from ulid import ULID

from .config import get_missed_grace
from .exceptions import DeliveryConflictError, DeliveryStatusConflictError
from .models.delivery import Delivery, UserContext
from .models.enums import DeliveryStatus
from .models.facts import TaskFact
from .store.protocols import DeliveryStore, ReminderPreferenceStore, TaskFactStore
from .timeutil import Clock, ensure_utc, utc_now

log = structlog.get_logger()


def compute_remind_at(due_at: datetime, lead_minutes: int) -> datetime:
    """candidate remind_at，始终不晚于 due_at"""
    due_at = ensure_utc(due_at)
    return min(due_at - timedelta(minutes=lead_minutes), due_at)


def build_delivery(
    task_id: str,
    context: UserContext,
    task_title: str,
    task_due_at: datetime,
    remind_at: datetime,
    now: datetime,
) -> Delivery:
    """构建一条新的 PENDING delivery"""
    return Delivery(
        delivery_id=str(ULID()),
        task_id=task_id,
        user_id=context.user_id,
        organization_id=context.organization_id,
        person_id=context.person_id,
        task_title=task_title,
        task_due_at=ensure_utc(task_due_at),
        remind_at=ensure_utc(remind_at),
        status=DeliveryStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


class DeliveryScheduler:
    """根据任务事实 x 提醒偏好惰性创建 delivery"""

    def __init__(
        self,
        delivery_store: DeliveryStore,
        task_facts: TaskFactStore,
        preferences: ReminderPreferenceStore,
        clock: Clock = utc_now,
        missed_grace: timedelta | None = None,
    ) -> None:
        """
        Args:
            delivery_store: Delivery 存储
            task_facts: 任务事实提供者
            preferences: 提醒偏好提供者
            clock: 时间源
            missed_grace: 漏提醒宽限窗口，None 时读取配置
        """
        self._deliveries = delivery_store
        self._task_facts = task_facts
        self._preferences = preferences
        self._clock = clock
        self._missed_grace = missed_grace if missed_grace is not None else get_missed_grace()

    async def ensure_delivery_records_for_upcoming(self, context: UserContext) -> None:
        """为当前用户的所有候选任务确保 delivery 存在"""
        now = self._clock()
        try:
            tasks = await self._task_facts.list_open_tasks_with_due_date(
                context.organization_id
            )
        except Exception as e:
            log.warning(
                "scheduler_task_listing_failed",
                user_id=context.user_id,
                organization_id=context.organization_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        for task in tasks:
            try:
                pref = await self._preferences.get_preference(task.task_id, context.user_id)
                if pref is None or pref.lead_minutes is None:
                    continue
                await self._materialize(task, pref.lead_minutes, context, now)
            except Exception as e:
                # 单任务失败不影响其他任务
                log.warning(
                    "scheduler_task_failed",
                    task_id=task.task_id,
                    user_id=context.user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def ensure_delivery_records_for_organization(self, organization_id: str) -> int:
        """为组织内所有设置了提醒偏好的用户确保 delivery 存在（推送 cron 使用）

        Returns:
            本次新创建的 delivery 数量
        """
        now = self._clock()
        created = 0
        try:
            tasks = await self._task_facts.list_open_tasks_with_due_date(organization_id)
        except Exception as e:
            log.warning(
                "scheduler_task_listing_failed",
                organization_id=organization_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        for task in tasks:
            try:
                prefs = await self._preferences.list_preferences_for_task(task.task_id)
            except Exception as e:
                log.warning(
                    "scheduler_task_failed",
                    task_id=task.task_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            for pref in prefs:
                if pref.lead_minutes is None:
                    continue
                context = UserContext(user_id=pref.user_id, organization_id=organization_id)
                try:
                    if await self._materialize(task, pref.lead_minutes, context, now):
                        created += 1
                except Exception as e:
                    log.warning(
                        "scheduler_task_failed",
                        task_id=task.task_id,
                        user_id=pref.user_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
        return created

    async def invalidate_for_due_date_change(
        self,
        task_id: str,
        new_due_at: datetime | None,
    ) -> int:
        """任务截止时间变化后，将快照过期的 PENDING delivery 置为 SUPERSEDED

        下一次调度 pass 会按新的截止时间重新创建。

        Returns:
            被 supersede 的 delivery 数量
        """
        now = self._clock()
        new_due_at = ensure_utc(new_due_at) if new_due_at is not None else None
        superseded = 0
        for delivery in await self._deliveries.list_active_for_task(task_id):
            if new_due_at is not None and delivery.task_due_at == new_due_at:
                continue
            if await self._deliveries.transition_status(
                delivery.delivery_id,
                DeliveryStatus.PENDING,
                DeliveryStatus.SUPERSEDED,
                now,
            ):
                superseded += 1
        if superseded:
            log.info(
                "deliveries_invalidated_for_due_date_change",
                task_id=task_id,
                count=superseded,
            )
        return superseded

    async def _materialize(
        self,
        task: TaskFact,
        lead_minutes: int,
        context: UserContext,
        now: datetime,
    ) -> Delivery | None:
        """对单个 (task, user) 执行 insert-if-absent，返回新建的 delivery 或 None"""
        if task.due_at is None or task.completed:
            return None
        due_at = ensure_utc(task.due_at)
        candidate = compute_remind_at(due_at, lead_minutes)

        active = await self._deliveries.get_active_delivery(task.task_id, context.user_id)
        if active is not None:
            if active.task_due_at == due_at:
                return None
            return await self._replace_stale(active, task, context, candidate, now)

        if candidate < now - self._missed_grace and not await self._deliveries.has_any_delivery(
            task.task_id, context.user_id
        ):
            # 窗口已过且从未提醒过：视为错过，不补发
            log.debug(
                "delivery_missed_skipped",
                task_id=task.task_id,
                user_id=context.user_id,
                remind_at=candidate.isoformat(),
            )
            return None

        delivery = build_delivery(task.task_id, context, task.title, due_at, candidate, now)
        if not await self._deliveries.insert_if_absent(delivery):
            return None

        log.info(
            "delivery_created",
            delivery_id=delivery.delivery_id,
            task_id=task.task_id,
            user_id=context.user_id,
            remind_at=candidate.isoformat(),
        )
        return delivery

    async def _replace_stale(
        self,
        stale: Delivery,
        task: TaskFact,
        context: UserContext,
        candidate: datetime,
        now: datetime,
    ) -> Delivery | None:
        """截止时间已变化：同一事务内 supersede 旧 delivery 并创建新 delivery"""
        replacement = build_delivery(
            task.task_id, context, task.title, ensure_utc(task.due_at), candidate, now
        )
        try:
            await self._deliveries.supersede_and_insert(stale.delivery_id, replacement, now)
        except DeliveryStatusConflictError:
            # 已被并发处理
            return None
        except DeliveryConflictError:
            # 该 remind_at 已使用过，不复活；仅让旧快照失效
            await self._deliveries.transition_status(
                stale.delivery_id,
                DeliveryStatus.PENDING,
                DeliveryStatus.SUPERSEDED,
                now,
            )
            return None

        log.info(
            "delivery_rescheduled",
            superseded_delivery_id=stale.delivery_id,
            delivery_id=replacement.delivery_id,
            task_id=task.task_id,
            user_id=context.user_id,
            remind_at=candidate.isoformat(),
        )
        return replacement
