"""PushConfig -- 推送通道配置加载

从环境变量加载配置。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

# 通知点击后跳转的任务详情路径前缀
TASK_DETAIL_PATH: str = "/tasks"

# 跳转时携带 delivery id 的查询参数名，页面据此直接确认对应提醒
REMINDER_QUERY_PARAM: str = "reminder"


class PushConfig(BaseModel):
    """Push 包配置 -- 从环境变量加载

    环境变量:
        TASKNUDGE_APP_ORIGIN: 应用 origin，通知点击后只复用同 origin 的窗口
        TASKNUDGE_PUSH_MODE: 推送模式（relay/log）
        TASKNUDGE_PUSH_RELAY_URL: 推送中继地址
        TASKNUDGE_PUSH_RELAY_KEY: 推送中继访问密钥
        TASKNUDGE_PUSH_TIMEOUT_S: 推送超时（秒，默认 10）
    """

    app_origin: str = Field(
        default="http://localhost:3000",
        description="应用 origin",
    )
    push_mode: Literal["relay", "log"] = Field(
        default="log",
        description="推送模式：relay 走中继，log 仅记录日志",
    )
    relay_url: str = Field(
        default="http://localhost:8787",
        description="推送中继基础 URL",
    )
    relay_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="推送中继访问密钥",
    )
    timeout_s: int = Field(
        default=10,
        ge=1,
        description="推送调用超时（秒）",
    )


def load_push_config() -> PushConfig:
    """从环境变量加载 Push 配置

    Returns:
        PushConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKNUDGE_APP_ORIGIN"):
        kwargs["app_origin"] = val.rstrip("/")

    if val := os.environ.get("TASKNUDGE_PUSH_MODE"):
        kwargs["push_mode"] = val

    if val := os.environ.get("TASKNUDGE_PUSH_RELAY_URL"):
        kwargs["relay_url"] = val

    if val := os.environ.get("TASKNUDGE_PUSH_RELAY_KEY"):
        kwargs["relay_api_key"] = SecretStr(val)

    if val := os.environ.get("TASKNUDGE_PUSH_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="TASKNUDGE_PUSH_TIMEOUT_S",
                value=val,
                fallback=10,
            )
            # 使用默认值，不阻塞启动

    return PushConfig(**kwargs)
