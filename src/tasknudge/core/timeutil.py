"""时间工具 -- 统一 UTC 时间与数据库时间戳格式

数据库中所有时间列使用定宽 UTC ISO-8601 字符串（微秒精度），
保证字符串排序与时间排序一致，且 (task_id, user_id, remind_at) 唯一键稳定。
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """naive 时间按 UTC 解释，aware 时间转换到 UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_db_ts(dt: datetime) -> str:
    """转换为数据库时间戳字符串"""
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_db_ts(value: str | None) -> datetime | None:
    """解析数据库时间戳字符串"""
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))
