"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、漏提醒宽限窗口、upcoming 查询窗口、cron 密钥等可配置项。
"""

import os
from datetime import timedelta
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKNUDGE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKNUDGE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tasknudge.db"),
    )


def get_cron_secret() -> str | None:
    """获取 cron 调用密钥，未配置时返回 None（cron 路由拒绝所有调用）"""
    return os.environ.get("TASKNUDGE_CRON_SECRET") or None


def get_missed_grace() -> timedelta:
    """漏提醒宽限窗口

    candidate remind_at 早于 now - grace 且从未创建过 delivery 时，视为已错过，不补发。
    """
    return timedelta(seconds=MISSED_GRACE_SECONDS)


# 漏提醒宽限窗口（秒）
MISSED_GRACE_SECONDS: int = int(
    os.environ.get("TASKNUDGE_MISSED_GRACE_SECONDS", "300")
)

# upcoming 查询默认窗口（分钟）
UPCOMING_WINDOW_MINUTES: int = int(
    os.environ.get("TASKNUDGE_UPCOMING_WINDOW_MINUTES", str(24 * 60))
)
