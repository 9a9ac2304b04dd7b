"""DeliveryStateMachine 测试

测试内容：
1. acknowledge / dismiss 幂等，终态之间不可互转
2. 租户隔离：他人的 delivery 视为不存在
3. snooze：原 delivery SUPERSEDED + 新 delivery，remind_at 不越过截止时间
4. snooze 参数校验先于存储访问
5. 并发 acknowledge / dismiss 只有一个生效
"""

import asyncio
from datetime import timedelta

import pytest
from tasknudge.core.exceptions import (
    DeliveryNotFoundError,
    InvalidArgumentError,
    InvalidDeliveryStateError,
)
from tasknudge.core.models import DeliveryStatus, UserContext
from tasknudge.core.scheduler import build_delivery
from tasknudge.core.state_machine import DeliveryStateMachine


async def _pending(store_group, context, t0, remind_minutes: int = 30, due_minutes: int = 60):
    delivery = build_delivery(
        "task-1",
        context,
        "整理会议纪要",
        t0 + timedelta(minutes=due_minutes),
        t0 + timedelta(minutes=remind_minutes),
        t0,
    )
    await store_group.delivery_store.insert_if_absent(delivery)
    return delivery


class _UntouchableStore:
    """任何访问都视为失败"""

    def __getattr__(self, name):
        raise AssertionError(f"store accessed: {name}")


class TestAcknowledgeDismiss:
    async def test_acknowledge(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        clock.set(31)

        result = await machine.acknowledge(delivery.delivery_id, context)

        assert result.status == DeliveryStatus.ACKNOWLEDGED
        assert result.updated_at == clock()
        stored = await store_group.delivery_store.get_delivery(delivery.delivery_id)
        assert stored.status == DeliveryStatus.ACKNOWLEDGED

    async def test_repeat_is_idempotent(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)

        await machine.dismiss(delivery.delivery_id, context)
        again = await machine.dismiss(delivery.delivery_id, context)

        assert again.status == DeliveryStatus.DISMISSED

    async def test_terminal_cannot_change(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        await machine.acknowledge(delivery.delivery_id, context)

        with pytest.raises(InvalidDeliveryStateError) as exc_info:
            await machine.dismiss(delivery.delivery_id, context)
        assert exc_info.value.status == "ACKNOWLEDGED"
        assert exc_info.value.code == "REMINDER_INVALID_STATE"

    async def test_unknown_delivery(self, store_group, clock, context):
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        with pytest.raises(DeliveryNotFoundError):
            await machine.acknowledge("01JNOTEXIST0000000000000000", context)

    async def test_other_users_delivery_is_not_found(
        self, store_group, clock, context, other_context, t0
    ):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)

        with pytest.raises(DeliveryNotFoundError):
            await machine.acknowledge(delivery.delivery_id, other_context)
        with pytest.raises(DeliveryNotFoundError):
            await machine.dismiss(
                delivery.delivery_id,
                UserContext(user_id="user-1", organization_id="org-2"),
            )

        stored = await store_group.delivery_store.get_delivery(delivery.delivery_id)
        assert stored.status == DeliveryStatus.PENDING

    async def test_blank_id_rejected(self, store_group, clock, context):
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        with pytest.raises(InvalidArgumentError):
            await machine.acknowledge("  ", context)

    async def test_concurrent_acknowledge_and_dismiss(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)

        results = await asyncio.gather(
            machine.acknowledge(delivery.delivery_id, context),
            machine.dismiss(delivery.delivery_id, context),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], InvalidDeliveryStateError)
        stored = await store_group.delivery_store.get_delivery(delivery.delivery_id)
        assert stored.status == succeeded[0].status


class TestSnooze:
    async def test_snooze_replaces_delivery(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        clock.set(31)

        replacement = await machine.snooze(delivery.delivery_id, context, 5)

        assert replacement.delivery_id != delivery.delivery_id
        assert replacement.remind_at == t0 + timedelta(minutes=36)
        assert replacement.task_due_at == delivery.task_due_at
        assert replacement.task_title == delivery.task_title
        assert replacement.person_id == "person-1"
        old = await store_group.delivery_store.get_delivery(delivery.delivery_id)
        assert old.status == DeliveryStatus.SUPERSEDED
        active = await store_group.delivery_store.get_active_delivery("task-1", "user-1")
        assert active.delivery_id == replacement.delivery_id

    async def test_snooze_capped_at_due(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        clock.set(50)

        replacement = await machine.snooze(delivery.delivery_id, context, 60)

        assert replacement.remind_at == t0 + timedelta(minutes=60)

    async def test_second_capped_snooze_is_rejected(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        clock.set(50)
        first = await machine.snooze(delivery.delivery_id, context, 60)

        clock.set(55)
        with pytest.raises(InvalidDeliveryStateError):
            await machine.snooze(first.delivery_id, context, 60)

        # 冲突时整体回滚，被 snooze 的 delivery 仍然有效
        stored = await store_group.delivery_store.get_delivery(first.delivery_id)
        assert stored.status == DeliveryStatus.PENDING

    async def test_snooze_overdue_task_rejected(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        clock.set(61)

        with pytest.raises(InvalidDeliveryStateError):
            await machine.snooze(delivery.delivery_id, context, 5)

    async def test_snooze_terminal_rejected(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        await machine.acknowledge(delivery.delivery_id, context)

        with pytest.raises(InvalidDeliveryStateError):
            await machine.snooze(delivery.delivery_id, context, 5)

    async def test_snooze_superseded_rejected(self, store_group, clock, context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)
        await machine.snooze(delivery.delivery_id, context, 5)

        with pytest.raises(InvalidDeliveryStateError):
            await machine.snooze(delivery.delivery_id, context, 5)

    @pytest.mark.parametrize("minutes", [0, -5, True, 2.5])
    async def test_invalid_minutes_rejected_before_storage(self, clock, context, minutes):
        machine = DeliveryStateMachine(_UntouchableStore(), clock=clock)

        with pytest.raises(InvalidArgumentError):
            await machine.snooze("01JANY000000000000000000000", context, minutes)

    async def test_snooze_other_users_delivery(self, store_group, clock, context, other_context, t0):
        delivery = await _pending(store_group, context, t0)
        machine = DeliveryStateMachine(store_group.delivery_store, clock=clock)

        with pytest.raises(DeliveryNotFoundError):
            await machine.snooze(delivery.delivery_id, other_context, 5)
