"""Store Protocol 接口定义

定义 DeliveryStore、TaskFactStore、ReminderPreferenceStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
调度器、查询服务、状态机只依赖这些接口，不依赖具体存储。
"""

from datetime import datetime
from typing import Protocol

from ..models.delivery import Delivery, UserContext
from ..models.enums import DeliveryStatus
from ..models.facts import ReminderPreference, TaskFact


class DeliveryStore(Protocol):
    """Delivery 存储接口

    并发安全由存储层保证：创建是原子的 insert-if-absent，
    supersede + insert 在同一事务内完成。
    """

    async def insert_if_absent(self, delivery: Delivery) -> bool:
        """原子插入；(task_id, user_id, remind_at) 已存在或已有 PENDING 时返回 False"""
        ...

    async def get_delivery(self, delivery_id: str) -> Delivery | None:
        """根据 delivery_id 查询（不做租户校验）"""
        ...

    async def get_delivery_for_context(
        self,
        delivery_id: str,
        context: UserContext,
    ) -> Delivery | None:
        """根据 delivery_id 查询，用户或组织不匹配时视为不存在"""
        ...

    async def has_any_delivery(self, task_id: str, user_id: str) -> bool:
        """(task, user) 是否存在过任意状态的 delivery"""
        ...

    async def get_active_delivery(self, task_id: str, user_id: str) -> Delivery | None:
        """查询 (task, user) 当前 PENDING 的 delivery"""
        ...

    async def list_deliveries_for_task(self, task_id: str, user_id: str) -> list[Delivery]:
        """查询 (task, user) 的全部 delivery，按 remind_at 正序"""
        ...

    async def list_active_for_task(self, task_id: str) -> list[Delivery]:
        """查询任务上所有用户的 PENDING delivery"""
        ...

    async def list_pending(
        self,
        context: UserContext,
        remind_from: datetime | None = None,
        remind_to: datetime | None = None,
        exclude_push_sent: bool = False,
    ) -> list[Delivery]:
        """查询上下文内 PENDING delivery，remind_at 在 [remind_from, remind_to] 内"""
        ...

    async def list_pending_for_organization(
        self,
        organization_id: str,
        remind_to: datetime,
        exclude_push_sent: bool = True,
    ) -> list[Delivery]:
        """查询组织内所有用户已到期的 PENDING delivery"""
        ...

    async def transition_status(
        self,
        delivery_id: str,
        from_status: DeliveryStatus,
        to_status: DeliveryStatus,
        ts: datetime,
    ) -> bool:
        """CAS 状态更新，当前状态不等于 from_status 时返回 False"""
        ...

    async def supersede_and_insert(
        self,
        delivery_id: str,
        replacement: Delivery,
        ts: datetime,
    ) -> None:
        """同一事务内将原 delivery 置为 SUPERSEDED 并插入替代 delivery"""
        ...

    async def mark_push_sent(self, delivery_id: str, ts: datetime) -> None:
        """记录 delivery 已交给推送通道"""
        ...


class TaskFactStore(Protocol):
    """任务事实接口（外部协作者）"""

    async def get_task(self, task_id: str, organization_id: str) -> TaskFact | None:
        """查询组织内可见的任务"""
        ...

    async def list_open_tasks_with_due_date(self, organization_id: str) -> list[TaskFact]:
        """查询组织内有截止时间且未完成的任务"""
        ...

    async def list_organizations_with_open_tasks(self) -> list[str]:
        """有截止时间且未完成任务的组织 ID 列表"""
        ...


class ReminderPreferenceStore(Protocol):
    """提醒偏好接口（外部协作者）"""

    async def get_preference(self, task_id: str, user_id: str) -> ReminderPreference | None:
        """查询单个 (task, user) 偏好"""
        ...

    async def list_preferences_for_task(self, task_id: str) -> list[ReminderPreference]:
        """查询任务上所有非空偏好"""
        ...

    async def upsert_preference(self, preference: ReminderPreference) -> None:
        """写入偏好；lead_minutes 为 None 时删除"""
        ...
