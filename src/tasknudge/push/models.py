"""Push 数据模型

PushPayload 是推送通道上的 JSON 线格式（camelCase 字段名），
NotificationIntent / NavigationIntent 是 worker 纯函数的输出，由平台 shim 执行。
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

PUSH_TYPE_TASK_REMINDER = "task-reminder"


class PushPayload(BaseModel):
    """任务提醒推送 payload

    type / deliveryId / taskId 缺失或为空时整个 payload 被丢弃；
    可选字段类型不对时按缺省处理，通知仍然展示。
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["task-reminder"] = Field(description="payload 类型")
    delivery_id: str = Field(alias="deliveryId", min_length=1)
    task_id: str = Field(alias="taskId", min_length=1)
    task_title: str | None = Field(default=None, alias="taskTitle")
    task_due_date: str | None = Field(
        default=None,
        alias="taskDueDate",
        description="ISO 时间戳，可选",
    )

    @field_validator("task_title", "task_due_date", mode="before")
    @classmethod
    def _drop_non_string(cls, value: object) -> str | None:
        return value if isinstance(value, str) else None

    def to_wire(self) -> bytes:
        """序列化为推送通道上的字节"""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class NotificationIntent(BaseModel):
    """待展示的系统通知

    tag 取 delivery id：同一 delivery 的重复推送替换而不是叠加。
    """

    title: str
    body: str
    tag: str
    data: dict[str, str] = Field(default_factory=dict)


class ClientWindow(BaseModel):
    """worker 可见的已打开页面"""

    client_id: str
    url: str
    focused: bool = False


class NavigationIntent(BaseModel):
    """通知点击后的导航动作：聚焦已有窗口并跳转，或打开新窗口"""

    action: Literal["focus_existing", "open_window"]
    url: str
    client_id: str | None = None
