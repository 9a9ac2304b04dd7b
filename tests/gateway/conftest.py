"""gateway 测试配置 -- FastAPI app + httpx AsyncClient fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tasknudge.core.store import create_store_group
from tasknudge.push import LogPushSender, PushConfig


@pytest_asyncio.fixture
async def test_app(tmp_path: Path):
    """测试用 FastAPI app（手动初始化 state，绕过 lifespan）"""
    os.environ["TASKNUDGE_DB_PATH"] = str(tmp_path / "test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from tasknudge.gateway.main import create_app

    app = create_app()

    store_group = await create_store_group(str(tmp_path / "test.db"))
    app.state.store_group = store_group
    app.state.push_config = PushConfig(app_origin="https://app.example.com")
    app.state.push_sender = LogPushSender()

    yield app

    await store_group.conn.close()
    os.environ.pop("TASKNUDGE_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-Id": "user-1", "X-Organization-Id": "org-1"}


@pytest.fixture
def other_user_headers() -> dict[str, str]:
    return {"X-User-Id": "user-2", "X-Organization-Id": "org-1"}
