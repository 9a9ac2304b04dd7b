"""SqliteDeliveryStore 测试

测试内容：
1. insert_if_absent 幂等：同一 (task, user, remind_at) 只落一行
2. 同一 (task, user) 至多一条 PENDING
3. CAS 状态更新
4. supersede_and_insert 原子性：插入冲突时整体回滚
5. 租户过滤 + 查询排序 + push_sent 标记
"""

from datetime import datetime, timedelta

import pytest
from tasknudge.core.exceptions import DeliveryConflictError, DeliveryStatusConflictError
from tasknudge.core.models import Delivery, DeliveryStatus, UserContext
from tasknudge.core.scheduler import build_delivery


def _delivery(
    context: UserContext,
    t0: datetime,
    remind_minutes: int,
    due_minutes: int = 60,
    task_id: str = "task-1",
) -> Delivery:
    return build_delivery(
        task_id,
        context,
        "准备季度评审",
        t0 + timedelta(minutes=due_minutes),
        t0 + timedelta(minutes=remind_minutes),
        t0,
    )


async def _count(store_group) -> int:
    cursor = await store_group.conn.execute("SELECT COUNT(*) FROM deliveries")
    row = await cursor.fetchone()
    return row[0]


class TestInsertIfAbsent:
    async def test_insert_then_read_back(self, store_group, context, t0):
        delivery = _delivery(context, t0, 30)
        assert await store_group.delivery_store.insert_if_absent(delivery) is True

        stored = await store_group.delivery_store.get_delivery(delivery.delivery_id)
        assert stored is not None
        assert stored.task_title == "准备季度评审"
        assert stored.remind_at == t0 + timedelta(minutes=30)
        assert stored.task_due_at == t0 + timedelta(minutes=60)
        assert stored.person_id == "person-1"
        assert stored.status == DeliveryStatus.PENDING

    async def test_same_key_different_id_is_ignored(self, store_group, context, t0):
        """同一 (task, user, remind_at) 重复插入只保留第一行"""
        first = _delivery(context, t0, 30)
        second = _delivery(context, t0, 30)
        assert first.delivery_id != second.delivery_id

        assert await store_group.delivery_store.insert_if_absent(first) is True
        assert await store_group.delivery_store.insert_if_absent(second) is False
        assert await _count(store_group) == 1

    async def test_second_pending_for_same_task_user_is_ignored(self, store_group, context, t0):
        await store_group.delivery_store.insert_if_absent(_delivery(context, t0, 30))
        assert await store_group.delivery_store.insert_if_absent(_delivery(context, t0, 45)) is False
        assert await _count(store_group) == 1

    async def test_other_user_gets_own_delivery(self, store_group, context, other_context, t0):
        await store_group.delivery_store.insert_if_absent(_delivery(context, t0, 30))
        assert await store_group.delivery_store.insert_if_absent(
            _delivery(other_context, t0, 30)
        ) is True
        assert await _count(store_group) == 2

    async def test_same_remind_at_not_recreated_after_terminal(self, store_group, context, t0):
        """已终结的提醒时刻不会再次生成"""
        first = _delivery(context, t0, 30)
        await store_group.delivery_store.insert_if_absent(first)
        await store_group.delivery_store.transition_status(
            first.delivery_id, DeliveryStatus.PENDING, DeliveryStatus.ACKNOWLEDGED, t0
        )
        assert await store_group.delivery_store.insert_if_absent(_delivery(context, t0, 30)) is False
        assert await store_group.delivery_store.get_active_delivery("task-1", "user-1") is None


class TestTransitionStatus:
    async def test_cas_succeeds_once(self, store_group, context, t0):
        delivery = _delivery(context, t0, 30)
        await store_group.delivery_store.insert_if_absent(delivery)

        store = store_group.delivery_store
        assert await store.transition_status(
            delivery.delivery_id, DeliveryStatus.PENDING, DeliveryStatus.DISMISSED, t0
        ) is True
        assert await store.transition_status(
            delivery.delivery_id, DeliveryStatus.PENDING, DeliveryStatus.ACKNOWLEDGED, t0
        ) is False

        stored = await store.get_delivery(delivery.delivery_id)
        assert stored.status == DeliveryStatus.DISMISSED

    async def test_unknown_delivery(self, store_group, t0):
        assert await store_group.delivery_store.transition_status(
            "missing", DeliveryStatus.PENDING, DeliveryStatus.DISMISSED, t0
        ) is False


class TestSupersedeAndInsert:
    async def test_supersede_and_insert(self, store_group, context, t0):
        original = _delivery(context, t0, 30)
        await store_group.delivery_store.insert_if_absent(original)
        replacement = _delivery(context, t0, 40)

        await store_group.delivery_store.supersede_and_insert(
            original.delivery_id, replacement, t0
        )

        old = await store_group.delivery_store.get_delivery(original.delivery_id)
        active = await store_group.delivery_store.get_active_delivery("task-1", "user-1")
        assert old.status == DeliveryStatus.SUPERSEDED
        assert active.delivery_id == replacement.delivery_id

    async def test_not_pending_raises_status_conflict(self, store_group, context, t0):
        original = _delivery(context, t0, 30)
        await store_group.delivery_store.insert_if_absent(original)
        await store_group.delivery_store.transition_status(
            original.delivery_id, DeliveryStatus.PENDING, DeliveryStatus.ACKNOWLEDGED, t0
        )

        with pytest.raises(DeliveryStatusConflictError):
            await store_group.delivery_store.supersede_and_insert(
                original.delivery_id, _delivery(context, t0, 40), t0
            )
        assert await _count(store_group) == 1

    async def test_insert_conflict_rolls_back_supersede(self, store_group, context, t0):
        """替代 delivery 与历史行冲突时，原 delivery 保持 PENDING"""
        historic = _delivery(context, t0, 40)
        await store_group.delivery_store.insert_if_absent(historic)
        await store_group.delivery_store.transition_status(
            historic.delivery_id, DeliveryStatus.PENDING, DeliveryStatus.DISMISSED, t0
        )
        original = _delivery(context, t0, 30)
        await store_group.delivery_store.insert_if_absent(original)

        with pytest.raises(DeliveryConflictError):
            await store_group.delivery_store.supersede_and_insert(
                original.delivery_id, _delivery(context, t0, 40), t0
            )

        stored = await store_group.delivery_store.get_delivery(original.delivery_id)
        assert stored.status == DeliveryStatus.PENDING
        assert await _count(store_group) == 2


class TestQueries:
    async def test_context_filter(self, store_group, context, other_context, t0):
        delivery = _delivery(context, t0, 30)
        await store_group.delivery_store.insert_if_absent(delivery)

        store = store_group.delivery_store
        assert await store.get_delivery_for_context(delivery.delivery_id, context) is not None
        assert await store.get_delivery_for_context(delivery.delivery_id, other_context) is None
        foreign_org = UserContext(user_id="user-1", organization_id="org-2")
        assert await store.get_delivery_for_context(delivery.delivery_id, foreign_org) is None

    async def test_list_pending_orders_by_remind_at(self, store_group, context, t0):
        later = _delivery(context, t0, 50, task_id="task-b")
        earlier = _delivery(context, t0, 10, task_id="task-a")
        middle = _delivery(context, t0, 30, task_id="task-c")
        for d in (later, earlier, middle):
            await store_group.delivery_store.insert_if_absent(d)

        result = await store_group.delivery_store.list_pending(context)
        assert [d.task_id for d in result] == ["task-a", "task-c", "task-b"]

        window = await store_group.delivery_store.list_pending(
            context,
            remind_from=t0 + timedelta(minutes=10),
            remind_to=t0 + timedelta(minutes=30),
        )
        assert [d.task_id for d in window] == ["task-a", "task-c"]

    async def test_mark_push_sent(self, store_group, context, t0):
        delivery = _delivery(context, t0, 0)
        await store_group.delivery_store.insert_if_absent(delivery)
        store = store_group.delivery_store

        pending = await store.list_pending_for_organization("org-1", remind_to=t0)
        assert [d.delivery_id for d in pending] == [delivery.delivery_id]

        await store.mark_push_sent(delivery.delivery_id, t0)

        assert await store.list_pending_for_organization("org-1", remind_to=t0) == []
        everything = await store.list_pending_for_organization(
            "org-1", remind_to=t0, exclude_push_sent=False
        )
        assert everything[0].push_sent_at == t0
        assert await store.list_pending(context, exclude_push_sent=True) == []
        assert len(await store.list_pending(context)) == 1

    async def test_list_active_for_task(self, store_group, context, other_context, t0):
        await store_group.delivery_store.insert_if_absent(_delivery(context, t0, 30))
        await store_group.delivery_store.insert_if_absent(_delivery(other_context, t0, 30))

        active = await store_group.delivery_store.list_active_for_task("task-1")
        assert [d.user_id for d in active] == ["user-1", "user-2"]
        assert await store_group.delivery_store.has_any_delivery("task-1", "user-1") is True
        assert await store_group.delivery_store.has_any_delivery("task-1", "user-3") is False
