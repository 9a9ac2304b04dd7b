"""TaskNudge Push -- 后台推送通知层

推送层公开接口导出。
"""

# 配置
from .config import PushConfig, load_push_config

# 异常
from .exceptions import MalformedPushPayloadError, PushError, RelayUnreachableError

# 数据模型
from .models import ClientWindow, NavigationIntent, NotificationIntent, PushPayload

# 推送通道
from .sender import LogPushSender, PushSender, RelayPushSender

# Worker
from .worker import (
    InMemoryNotificationCenter,
    PushDeliveryWorker,
    build_task_url,
    on_click,
    on_push,
)

__all__ = [
    "PushPayload",
    "NotificationIntent",
    "NavigationIntent",
    "ClientWindow",
    "PushDeliveryWorker",
    "InMemoryNotificationCenter",
    "on_push",
    "on_click",
    "build_task_url",
    "PushSender",
    "LogPushSender",
    "RelayPushSender",
    "PushConfig",
    "load_push_config",
    "PushError",
    "RelayUnreachableError",
    "MalformedPushPayloadError",
]
