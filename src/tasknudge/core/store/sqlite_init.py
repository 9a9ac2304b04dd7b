"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
deliveries 表归本模块所有；tasks / reminder_preferences 是外部事实的默认存储。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# deliveries 表 DDL
_DELIVERIES_DDL = """
CREATE TABLE IF NOT EXISTS deliveries (
    delivery_id      TEXT PRIMARY KEY,
    task_id          TEXT NOT NULL,
    user_id          TEXT NOT NULL,
    organization_id  TEXT NOT NULL,
    person_id        TEXT,
    task_title       TEXT NOT NULL DEFAULT '',
    task_due_at      TEXT NOT NULL,
    remind_at        TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'PENDING',
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL,
    push_sent_at     TEXT,

    CHECK (remind_at <= task_due_at)
);
"""

_DELIVERIES_INDEXES = [
    # 幂等键：同一 (task, user, remind_at) 至多一条
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_deliveries_task_user_remind "
        "ON deliveries(task_id, user_id, remind_at);"
    ),
    # 同一 (task, user) 至多一条 PENDING
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_deliveries_one_pending "
        "ON deliveries(task_id, user_id) WHERE status = 'PENDING';"
    ),
    # due-now / upcoming 查询
    (
        "CREATE INDEX IF NOT EXISTS idx_deliveries_user_status_remind "
        "ON deliveries(user_id, organization_id, status, remind_at);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_deliveries_org_status_remind "
        "ON deliveries(organization_id, status, remind_at);"
    ),
]

# tasks 表 DDL（外部任务事实）
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id          TEXT PRIMARY KEY,
    organization_id  TEXT NOT NULL,
    title            TEXT NOT NULL DEFAULT '',
    due_at           TEXT,
    completed        INTEGER NOT NULL DEFAULT 0
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_org_due ON tasks(organization_id, due_at);",
]

# reminder_preferences 表 DDL（外部偏好事实）
_PREFERENCES_DDL = """
CREATE TABLE IF NOT EXISTS reminder_preferences (
    task_id       TEXT NOT NULL,
    user_id       TEXT NOT NULL,
    lead_minutes  INTEGER,

    PRIMARY KEY (task_id, user_id)
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_DELIVERIES_DDL)
    await conn.execute(_TASKS_DDL)
    await conn.execute(_PREFERENCES_DDL)

    # 创建索引
    for idx_sql in _DELIVERIES_INDEXES + _TASKS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
