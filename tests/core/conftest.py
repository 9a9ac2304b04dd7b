"""core 测试配置 -- StoreGroup、固定时钟与用户上下文 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from tasknudge.core.models import UserContext
from tasknudge.core.store import StoreGroup, create_store_group

# 所有时间相关测试的基准时刻
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FixedClock:
    """可手动拨动的时钟"""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, minutes: float) -> datetime:
        """拨到 T0 + minutes"""
        self.now = T0 + timedelta(minutes=minutes)
        return self.now


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def context() -> UserContext:
    return UserContext(user_id="user-1", organization_id="org-1", person_id="person-1")


@pytest.fixture
def other_context() -> UserContext:
    return UserContext(user_id="user-2", organization_id="org-1")


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """core 层已初始化的 StoreGroup"""
    sg = await create_store_group(str(tmp_path / "core_test.db"))
    yield sg
    await sg.conn.close()
