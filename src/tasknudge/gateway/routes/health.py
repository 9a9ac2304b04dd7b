"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、WAL 模式、磁盘空间。
"""

import shutil

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse
from tasknudge.core.store.sqlite_init import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. wal_mode: WAL 是否生效（多进程并发轮询依赖）
    3. disk_space_mb: 磁盘剩余空间
    4. push_mode: 当前推送模式（仅展示）
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
        checks["wal_mode"] = "ok" if await verify_wal_mode(store_group.conn) else "off"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        checks["sqlite"] = "unavailable"
        all_ok = False

    # 2. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except Exception:
        checks["disk_space_mb"] = 0
        all_ok = False

    push_config = getattr(request.app.state, "push_config", None)
    checks["push_mode"] = push_config.push_mode if push_config else "unconfigured"

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "checks": checks,
        },
    )
