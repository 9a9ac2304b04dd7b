"""PushSender -- 把提醒 payload 交给推送通道

Web Push 握手（VAPID 等）由外部中继完成，这里只负责把 payload 投递给中继。
- RelayPushSender: httpx POST 到中继
- LogPushSender: 仅记录日志（默认模式 / 本地开发）
"""

from typing import Protocol

import httpx
import structlog

from .exceptions import PushError, RelayUnreachableError
from .models import PushPayload

log = structlog.get_logger()

# 连接类异常类型集合（触发 RelayUnreachableError）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.TimeoutException,
)


class PushSender(Protocol):
    """推送通道接口"""

    async def send(self, user_id: str, payload: PushPayload) -> None:
        """向用户的所有已订阅设备推送 payload"""
        ...


class LogPushSender:
    """只记录日志的推送实现"""

    def __init__(self) -> None:
        self.sent: list[tuple[str, PushPayload]] = []

    async def send(self, user_id: str, payload: PushPayload) -> None:
        self.sent.append((user_id, payload))
        log.info(
            "push_logged",
            user_id=user_id,
            delivery_id=payload.delivery_id,
            task_id=payload.task_id,
        )


class RelayPushSender:
    """推送中继客户端"""

    def __init__(
        self,
        relay_url: str,
        relay_api_key: str = "",
        timeout_s: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            relay_url: 中继基础 URL
            relay_api_key: 中继访问密钥
            timeout_s: 请求超时（秒）
            transport: 可选 httpx transport（测试注入）
        """
        self._relay_url = relay_url.rstrip("/")
        self._relay_api_key = relay_api_key
        self._timeout_s = timeout_s
        self._transport = transport

    async def send(self, user_id: str, payload: PushPayload) -> None:
        """POST {relay_url}/send

        Raises:
            RelayUnreachableError: 中继连接失败或超时
            PushError: 中继返回非 2xx
        """
        url = f"{self._relay_url}/send"
        headers = {"Content-Type": "application/json"}
        if self._relay_api_key:
            headers["Authorization"] = f"Bearer {self._relay_api_key}"
        body = {
            "user_id": user_id,
            "topic": payload.delivery_id,
            "payload": payload.model_dump(by_alias=True, exclude_none=True),
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_s,
                transport=self._transport,
            ) as http_client:
                resp = await http_client.post(url, json=body, headers=headers)
        except _CONNECTION_ERROR_TYPES as e:
            log.error(
                "push_relay_unreachable",
                relay_url=self._relay_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RelayUnreachableError(self._relay_url, e) from e

        if resp.status_code >= 300:
            raise PushError(
                f"Push relay rejected delivery {payload.delivery_id}: HTTP {resp.status_code}",
                recoverable=resp.status_code >= 500,
            )

        log.info(
            "push_relayed",
            user_id=user_id,
            delivery_id=payload.delivery_id,
            status_code=resp.status_code,
        )
