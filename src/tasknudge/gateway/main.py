"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 推送通道初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from tasknudge.core.config import get_db_path
from tasknudge.core.store import create_store_group
from tasknudge.push import LogPushSender, PushConfig, RelayPushSender, load_push_config

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.tenancy_mw import TenancyMiddleware
from .routes import cron, health, preferences, reminders

log = structlog.get_logger()


def build_push_sender(config: PushConfig):
    """根据配置选择推送通道"""
    if config.push_mode == "relay":
        return RelayPushSender(
            relay_url=config.relay_url,
            relay_api_key=config.relay_api_key.get_secret_value(),
            timeout_s=config.timeout_s,
        )
    return LogPushSender()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和推送通道，关闭时清理连接"""
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    push_config = load_push_config()
    app.state.push_config = push_config
    app.state.push_sender = build_push_sender(push_config)
    log.info(
        "push_sender_initialized",
        mode=push_config.push_mode,
        app_origin=push_config.app_origin,
    )

    yield

    # 关闭：清理数据库连接
    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskNudge Gateway",
        version="0.1.0",
        description="任务提醒投递 API",
        lifespan=lifespan,
    )

    # 注册中间件（后注册的先执行：Logging 清理并生成 request_id，随后 Tenancy 绑定租户）
    app.add_middleware(TenancyMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(reminders.router, tags=["task-reminders"])
    app.include_router(preferences.router, tags=["reminder-preferences"])
    app.include_router(cron.router, tags=["cron"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
