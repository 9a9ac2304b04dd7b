"""PushDeliveryWorker -- 后台推送通知处理

独立于任何页面生命周期运行。决策逻辑是两个纯函数：
- on_push(payload) -> NotificationIntent | None
- on_click(notification_data, clients, app_origin) -> NavigationIntent | None
PushDeliveryWorker 是把它们接到平台通知中心/窗口管理的薄 shim。

失败策略：任何解析/校验失败都静默丢弃（不展示降级通知、不导航），
任何异常都不向外传播，避免打断 worker 的事件循环。
两次事件之间不保留任何状态，唯一持久化的是平台按 tag 保存的通知本身。
"""

import json
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Protocol
from urllib.parse import quote, urlencode, urlsplit

import structlog
from pydantic import ValidationError

from .config import REMINDER_QUERY_PARAM, TASK_DETAIL_PATH
from .exceptions import MalformedPushPayloadError
from .models import ClientWindow, NavigationIntent, NotificationIntent, PushPayload

log = structlog.get_logger()

DEFAULT_NOTIFICATION_TITLE = "Task due"
DUE_SOON_LABEL = "soon"


def format_due_label(due: datetime) -> str:
    """默认截止时间文案，转换到本地时区后按进程 locale 的日期格式输出"""
    return due.astimezone().strftime("%x %H:%M")


def parse_push_payload(data: bytes | str | None) -> PushPayload:
    """解析不可信的 push 字节

    Raises:
        MalformedPushPayloadError: 非 JSON、非对象或缺少必填字段
    """
    if data is None:
        raise MalformedPushPayloadError("empty payload")
    try:
        raw = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedPushPayloadError(f"invalid json: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedPushPayloadError("payload is not an object")
    try:
        return PushPayload.model_validate(raw)
    except ValidationError as e:
        raise MalformedPushPayloadError(f"{e.error_count()} invalid field(s)") from e


def _due_label(task_due_date: str | None, format_due: Callable[[datetime], str]) -> str:
    if not task_due_date:
        return DUE_SOON_LABEL
    try:
        due = datetime.fromisoformat(task_due_date.replace("Z", "+00:00"))
    except ValueError:
        return DUE_SOON_LABEL
    return format_due(due)


def on_push(
    data: bytes | str | None,
    format_due: Callable[[datetime], str] = format_due_label,
) -> NotificationIntent | None:
    """push 到达：返回待展示的通知，payload 非法时返回 None"""
    try:
        payload = parse_push_payload(data)
    except MalformedPushPayloadError as e:
        log.debug("push_payload_discarded", reason=e.reason)
        return None

    return NotificationIntent(
        title=payload.task_title or DEFAULT_NOTIFICATION_TITLE,
        body=f"Due {_due_label(payload.task_due_date, format_due)}. Click to open.",
        tag=payload.delivery_id,
        data={"deliveryId": payload.delivery_id, "taskId": payload.task_id},
    )


def build_task_url(app_origin: str, task_id: str, delivery_id: str | None) -> str:
    """任务详情页 URL，附带 delivery id 供页面直接确认"""
    url = f"{app_origin.rstrip('/')}{TASK_DETAIL_PATH}/{quote(task_id, safe='')}"
    if delivery_id:
        url += "?" + urlencode({REMINDER_QUERY_PARAM: delivery_id})
    return url


def _same_origin(url: str, app_origin: str) -> bool:
    left = urlsplit(url)
    right = urlsplit(app_origin)
    return (left.scheme.lower(), left.netloc.lower()) == (
        right.scheme.lower(),
        right.netloc.lower(),
    )


def on_click(
    notification_data: Mapping | None,
    clients: Sequence[ClientWindow],
    app_origin: str,
) -> NavigationIntent | None:
    """通知被点击：复用同 origin 的已打开窗口（优先已聚焦的），否则打开新窗口

    task id / delivery id 取自通知自身携带的 data，而不是重新解析原始 payload，
    worker 可能在两次事件之间被重启。
    """
    if not isinstance(notification_data, Mapping):
        return None
    task_id = notification_data.get("taskId")
    if not isinstance(task_id, str) or not task_id:
        return None
    delivery_id = notification_data.get("deliveryId")
    if not isinstance(delivery_id, str):
        delivery_id = None

    url = build_task_url(app_origin, task_id, delivery_id)
    same_origin = [c for c in clients if _same_origin(c.url, app_origin)]
    if same_origin:
        # 优先当前聚焦的窗口
        target = next((c for c in same_origin if c.focused), same_origin[0])
        return NavigationIntent(
            action="focus_existing",
            url=url,
            client_id=target.client_id,
        )
    return NavigationIntent(action="open_window", url=url)


class NotificationCenter(Protocol):
    """平台通知中心：相同 tag 的通知替换而不是叠加"""

    async def show(self, intent: NotificationIntent) -> None: ...

    async def close(self, tag: str) -> None: ...


class ClientWindows(Protocol):
    """平台窗口管理"""

    async def match_all(self) -> list[ClientWindow]: ...

    async def navigate(self, client_id: str, url: str) -> None: ...

    async def focus(self, client_id: str) -> None: ...

    async def open_window(self, url: str) -> None: ...


class InMemoryNotificationCenter:
    """按 tag 保存通知的通知中心实现"""

    def __init__(self) -> None:
        self._by_tag: dict[str, NotificationIntent] = {}

    async def show(self, intent: NotificationIntent) -> None:
        self._by_tag[intent.tag] = intent

    async def close(self, tag: str) -> None:
        self._by_tag.pop(tag, None)

    @property
    def notifications(self) -> list[NotificationIntent]:
        return list(self._by_tag.values())


class PushDeliveryWorker:
    """后台推送 worker shim -- 把纯函数决策应用到平台"""

    def __init__(
        self,
        notifications: NotificationCenter,
        clients: ClientWindows,
        app_origin: str,
        format_due: Callable[[datetime], str] = format_due_label,
    ) -> None:
        self._notifications = notifications
        self._clients = clients
        self._app_origin = app_origin
        self._format_due = format_due

    async def handle_push(self, data: bytes | str | None) -> NotificationIntent | None:
        """处理 push 事件，永不抛出异常"""
        try:
            intent = on_push(data, self._format_due)
            if intent is None:
                return None
            await self._notifications.show(intent)
            log.debug("push_notification_shown", tag=intent.tag)
            return intent
        except Exception as e:
            log.warning(
                "push_handling_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def handle_click(
        self,
        tag: str,
        notification_data: Mapping | None,
    ) -> NavigationIntent | None:
        """处理通知点击，永不抛出异常

        每次点击恰好执行"聚焦并跳转已有窗口"或"打开新窗口"之一。
        """
        try:
            await self._notifications.close(tag)
        except Exception as e:
            log.warning("notification_close_failed", tag=tag, error=str(e))

        try:
            clients = await self._clients.match_all()
            intent = on_click(notification_data, clients, self._app_origin)
            if intent is None:
                return None
            if intent.action == "focus_existing" and intent.client_id is not None:
                await self._clients.navigate(intent.client_id, intent.url)
                await self._clients.focus(intent.client_id)
            else:
                await self._clients.open_window(intent.url)
            log.debug("notification_click_routed", action=intent.action, url=intent.url)
            return intent
        except Exception as e:
            log.warning(
                "notification_click_failed",
                tag=tag,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
