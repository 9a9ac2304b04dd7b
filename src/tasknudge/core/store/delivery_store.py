"""DeliveryStore SQLite 实现

幂等创建依赖 deliveries 表上的两个唯一索引：
- (task_id, user_id, remind_at)
- (task_id, user_id) WHERE status = 'PENDING'
insert_if_absent 使用 INSERT OR IGNORE，不做"先查后插"。
"""

from datetime import datetime

import aiosqlite

from ..exceptions import DeliveryConflictError, DeliveryStatusConflictError
from ..models.delivery import Delivery, UserContext
from ..models.enums import DeliveryStatus
from ..timeutil import from_db_ts, to_db_ts
from .transaction import write_transaction

_COLUMNS = (
    "delivery_id, task_id, user_id, organization_id, person_id, task_title, "
    "task_due_at, remind_at, status, created_at, updated_at, push_sent_at"
)

_INSERT_SQL = f"INSERT INTO deliveries ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"

_INSERT_IGNORE_SQL = (
    f"INSERT OR IGNORE INTO deliveries ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)

# 任务已完成时其 PENDING delivery 不再对外可见；tasks 中没有对应行时不过滤
_TASK_OPEN_CLAUSE = (
    "NOT EXISTS (SELECT 1 FROM tasks WHERE tasks.task_id = deliveries.task_id "
    "AND tasks.completed = 1)"
)


class SqliteDeliveryStore:
    """DeliveryStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_if_absent(self, delivery: Delivery) -> bool:
        """原子插入，返回是否真正写入了新行"""
        async with write_transaction(self._conn):
            cursor = await self._conn.execute(
                _INSERT_IGNORE_SQL,
                self._delivery_params(delivery),
            )
            return cursor.rowcount == 1

    async def get_delivery(self, delivery_id: str) -> Delivery | None:
        """根据 delivery_id 查询"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM deliveries WHERE delivery_id = ?",
            (delivery_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_delivery(row)

    async def get_delivery_for_context(
        self,
        delivery_id: str,
        context: UserContext,
    ) -> Delivery | None:
        """根据 delivery_id 查询，附带租户校验"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM deliveries
            WHERE delivery_id = ? AND user_id = ? AND organization_id = ?
            """,
            (delivery_id, context.user_id, context.organization_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_delivery(row)

    async def has_any_delivery(self, task_id: str, user_id: str) -> bool:
        cursor = await self._conn.execute(
            "SELECT 1 FROM deliveries WHERE task_id = ? AND user_id = ? LIMIT 1",
            (task_id, user_id),
        )
        row = await cursor.fetchone()
        return row is not None

    async def get_active_delivery(self, task_id: str, user_id: str) -> Delivery | None:
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM deliveries
            WHERE task_id = ? AND user_id = ? AND status = ?
            """,
            (task_id, user_id, DeliveryStatus.PENDING.value),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_delivery(row)

    async def list_deliveries_for_task(self, task_id: str, user_id: str) -> list[Delivery]:
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM deliveries
            WHERE task_id = ? AND user_id = ?
            ORDER BY remind_at ASC, created_at ASC
            """,
            (task_id, user_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_delivery(row) for row in rows]

    async def list_active_for_task(self, task_id: str) -> list[Delivery]:
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM deliveries
            WHERE task_id = ? AND status = ?
            ORDER BY user_id
            """,
            (task_id, DeliveryStatus.PENDING.value),
        )
        rows = await cursor.fetchall()
        return [self._row_to_delivery(row) for row in rows]

    async def list_pending(
        self,
        context: UserContext,
        remind_from: datetime | None = None,
        remind_to: datetime | None = None,
        exclude_push_sent: bool = False,
    ) -> list[Delivery]:
        """查询上下文内 PENDING delivery，按 remind_at 正序（最早到期优先）"""
        clauses = ["user_id = ?", "organization_id = ?", "status = ?", _TASK_OPEN_CLAUSE]
        params: list = [context.user_id, context.organization_id, DeliveryStatus.PENDING.value]
        if remind_from is not None:
            clauses.append("remind_at >= ?")
            params.append(to_db_ts(remind_from))
        if remind_to is not None:
            clauses.append("remind_at <= ?")
            params.append(to_db_ts(remind_to))
        if exclude_push_sent:
            clauses.append("push_sent_at IS NULL")

        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM deliveries WHERE {' AND '.join(clauses)} "
            "ORDER BY remind_at ASC",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_delivery(row) for row in rows]

    async def list_pending_for_organization(
        self,
        organization_id: str,
        remind_to: datetime,
        exclude_push_sent: bool = True,
    ) -> list[Delivery]:
        """查询组织内已到期的 PENDING delivery（推送 cron 使用）"""
        sql = f"""
            SELECT {_COLUMNS} FROM deliveries
            WHERE organization_id = ? AND status = ? AND remind_at <= ?
              AND {_TASK_OPEN_CLAUSE}
        """
        if exclude_push_sent:
            sql += " AND push_sent_at IS NULL"
        sql += " ORDER BY remind_at ASC"
        cursor = await self._conn.execute(
            sql,
            (organization_id, DeliveryStatus.PENDING.value, to_db_ts(remind_to)),
        )
        rows = await cursor.fetchall()
        return [self._row_to_delivery(row) for row in rows]

    async def transition_status(
        self,
        delivery_id: str,
        from_status: DeliveryStatus,
        to_status: DeliveryStatus,
        ts: datetime,
    ) -> bool:
        """CAS 状态更新"""
        async with write_transaction(self._conn):
            cursor = await self._conn.execute(
                """
                UPDATE deliveries
                SET status = ?, updated_at = ?
                WHERE delivery_id = ? AND status = ?
                """,
                (to_status.value, to_db_ts(ts), delivery_id, from_status.value),
            )
            return cursor.rowcount == 1

    async def supersede_and_insert(
        self,
        delivery_id: str,
        replacement: Delivery,
        ts: datetime,
    ) -> None:
        """同一事务内 supersede 原 delivery 并插入替代 delivery

        Raises:
            DeliveryStatusConflictError: 原 delivery 已不是 PENDING
            DeliveryConflictError: 替代 delivery 与已有 (task, user, remind_at) 冲突
        """
        async with write_transaction(self._conn):
            cursor = await self._conn.execute(
                """
                UPDATE deliveries
                SET status = ?, updated_at = ?
                WHERE delivery_id = ? AND status = ?
                """,
                (
                    DeliveryStatus.SUPERSEDED.value,
                    to_db_ts(ts),
                    delivery_id,
                    DeliveryStatus.PENDING.value,
                ),
            )
            if cursor.rowcount != 1:
                raise DeliveryStatusConflictError(delivery_id)

            try:
                await self._conn.execute(_INSERT_SQL, self._delivery_params(replacement))
            except aiosqlite.IntegrityError as e:
                raise DeliveryConflictError(
                    replacement.task_id,
                    replacement.user_id,
                    to_db_ts(replacement.remind_at),
                ) from e

    async def mark_push_sent(self, delivery_id: str, ts: datetime) -> None:
        async with write_transaction(self._conn):
            await self._conn.execute(
                "UPDATE deliveries SET push_sent_at = ?, updated_at = ? WHERE delivery_id = ?",
                (to_db_ts(ts), to_db_ts(ts), delivery_id),
            )

    @staticmethod
    def _delivery_params(delivery: Delivery) -> tuple:
        return (
            delivery.delivery_id,
            delivery.task_id,
            delivery.user_id,
            delivery.organization_id,
            delivery.person_id,
            delivery.task_title,
            to_db_ts(delivery.task_due_at),
            to_db_ts(delivery.remind_at),
            delivery.status.value,
            to_db_ts(delivery.created_at),
            to_db_ts(delivery.updated_at),
            to_db_ts(delivery.push_sent_at) if delivery.push_sent_at else None,
        )

    @staticmethod
    def _row_to_delivery(row: aiosqlite.Row) -> Delivery:
        """将数据库行转换为 Delivery 模型"""
        return Delivery(
            delivery_id=row[0],
            task_id=row[1],
            user_id=row[2],
            organization_id=row[3],
            person_id=row[4],
            task_title=row[5],
            task_due_at=from_db_ts(row[6]),
            remind_at=from_db_ts(row[7]),
            status=DeliveryStatus(row[8]),
            created_at=from_db_ts(row[9]),
            updated_at=from_db_ts(row[10]),
            push_sent_at=from_db_ts(row[11]),
        )
