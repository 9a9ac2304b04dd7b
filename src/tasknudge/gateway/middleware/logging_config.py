"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出（生产环境，便于按 delivery_id / user_id 检索）
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时降级为纯本地日志。
"""

import logging
import os

import structlog
from fastapi import FastAPI

SERVICE_NAME = "tasknudge-gateway"


def _add_service_name(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """初始化 structlog 配置

    根据 TASKNUDGE_LOG_FORMAT 环境变量选择渲染模式：
    - "json": 结构化 JSON 输出
    - "dev" (默认): pretty print 可读输出
    TASKNUDGE_LOG_LEVEL 控制根 logger 级别（默认 INFO）。
    """
    log_format = os.environ.get("TASKNUDGE_LOG_FORMAT", "dev")
    log_level = os.environ.get("TASKNUDGE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # 标准库 logging（uvicorn 等第三方日志）走同一渲染链
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(_resolve_level(log_level))

    # aiosqlite 每条语句一条 debug 日志，单独压低
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def setup_logfire(app: FastAPI) -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE 环境变量控制：
    - "true": 启用 Logfire APM（需要 LOGFIRE_TOKEN）
    - "false" (默认): 降级为纯本地日志
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name=SERVICE_NAME)
        logfire.instrument_fastapi(app)
    except Exception as e:
        # Logfire 初始化失败不影响提醒服务运行
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
