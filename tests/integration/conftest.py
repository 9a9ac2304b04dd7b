"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from tasknudge.core.store import StoreGroup, create_store_group


@pytest_asyncio.fixture
async def integration_stores(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    store_group = await create_store_group(str(tmp_path / "integration.db"))
    yield store_group
    await store_group.conn.close()
