"""写事务封装

同一连接上的写操作串行化：多个协程共享一个 aiosqlite 连接时，
一个协程的 commit 不能提交另一个协程未完成的写入。
成功时提交，任何异常时回滚并重新抛出。
"""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

_write_locks: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def _get_write_lock(conn: aiosqlite.Connection) -> asyncio.Lock:
    lock = _write_locks.get(conn)
    if lock is None:
        lock = asyncio.Lock()
        _write_locks[conn] = lock
    return lock


@asynccontextmanager
async def write_transaction(conn: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    """在同一事务内执行一组写操作

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）

    Raises:
        Exception: 如果事务内任一写入失败，自动回滚
    """
    async with _get_write_lock(conn):
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
