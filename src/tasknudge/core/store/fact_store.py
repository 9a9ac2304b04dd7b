"""外部事实的 SQLite 默认实现

tasks / reminder_preferences 表由外部系统维护；
这里提供读接口与写入辅助，使服务可以独立运行和测试。
"""

import aiosqlite

from ..models.facts import ReminderPreference, TaskFact
from ..timeutil import from_db_ts, to_db_ts
from .transaction import write_transaction


class SqliteTaskFactStore:
    """TaskFactStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_task(self, task: TaskFact) -> None:
        """写入或更新任务事实"""
        async with write_transaction(self._conn):
            await self._conn.execute(
                """
                INSERT INTO tasks (task_id, organization_id, title, due_at, completed)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(task_id) DO UPDATE SET
                    organization_id = excluded.organization_id,
                    title = excluded.title,
                    due_at = excluded.due_at,
                    completed = excluded.completed
                """,
                (
                    task.task_id,
                    task.organization_id,
                    task.title,
                    to_db_ts(task.due_at) if task.due_at else None,
                    int(task.completed),
                ),
            )

    async def get_task(self, task_id: str, organization_id: str) -> TaskFact | None:
        cursor = await self._conn.execute(
            """
            SELECT task_id, organization_id, title, due_at, completed FROM tasks
            WHERE task_id = ? AND organization_id = ?
            """,
            (task_id, organization_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_open_tasks_with_due_date(self, organization_id: str) -> list[TaskFact]:
        """查询组织内有截止时间且未完成的任务，按截止时间正序"""
        cursor = await self._conn.execute(
            """
            SELECT task_id, organization_id, title, due_at, completed FROM tasks
            WHERE organization_id = ? AND due_at IS NOT NULL AND completed = 0
            ORDER BY due_at ASC
            """,
            (organization_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_organizations_with_open_tasks(self) -> list[str]:
        """有截止时间且未完成任务的组织 ID 列表（推送 cron 遍历使用）"""
        cursor = await self._conn.execute(
            """
            SELECT DISTINCT organization_id FROM tasks
            WHERE due_at IS NOT NULL AND completed = 0
            ORDER BY organization_id
            """
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> TaskFact:
        return TaskFact(
            task_id=row[0],
            organization_id=row[1],
            title=row[2],
            due_at=from_db_ts(row[3]),
            completed=bool(row[4]),
        )


class SqliteReminderPreferenceStore:
    """ReminderPreferenceStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_preference(self, task_id: str, user_id: str) -> ReminderPreference | None:
        cursor = await self._conn.execute(
            """
            SELECT task_id, user_id, lead_minutes FROM reminder_preferences
            WHERE task_id = ? AND user_id = ?
            """,
            (task_id, user_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return ReminderPreference(task_id=row[0], user_id=row[1], lead_minutes=row[2])

    async def list_preferences_for_task(self, task_id: str) -> list[ReminderPreference]:
        cursor = await self._conn.execute(
            """
            SELECT task_id, user_id, lead_minutes FROM reminder_preferences
            WHERE task_id = ? AND lead_minutes IS NOT NULL
            ORDER BY user_id
            """,
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [
            ReminderPreference(task_id=row[0], user_id=row[1], lead_minutes=row[2])
            for row in rows
        ]

    async def upsert_preference(self, preference: ReminderPreference) -> None:
        """写入偏好；lead_minutes 为 None 时删除该行"""
        async with write_transaction(self._conn):
            if preference.lead_minutes is None:
                await self._conn.execute(
                    "DELETE FROM reminder_preferences WHERE task_id = ? AND user_id = ?",
                    (preference.task_id, preference.user_id),
                )
                return
            await self._conn.execute(
                """
                INSERT INTO reminder_preferences (task_id, user_id, lead_minutes)
                VALUES (?, ?, ?)
                ON CONFLICT(task_id, user_id) DO UPDATE SET
                    lead_minutes = excluded.lead_minutes
                """,
                (preference.task_id, preference.user_id, preference.lead_minutes),
            )
