"""Delivery Domain Model

一条 Delivery 表示"某用户应在某时刻被提醒某任务"的持久化决定。
task_title / task_due_at 是创建时的任务快照，之后任务被编辑也不回写。
remind_at 创建后不可变，只有 status 会变化。
"""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from .enums import DeliveryStatus


class UserContext(BaseModel):
    """请求上下文 -- 每个操作显式传入，不依赖全局会话"""

    user_id: str = Field(description="用户 ID")
    organization_id: str = Field(description="组织 ID")
    person_id: str | None = Field(default=None, description="组织内人员 ID")


class Delivery(BaseModel):
    """Delivery 数据模型

    不变量：remind_at <= task_due_at。
    """

    delivery_id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联的任务 ID")
    user_id: str = Field(description="被提醒的用户 ID")
    organization_id: str = Field(description="所属组织 ID")
    person_id: str | None = Field(default=None, description="组织内人员 ID")
    task_title: str = Field(description="任务标题快照")
    task_due_at: datetime = Field(description="任务截止时间快照")
    remind_at: datetime = Field(description="提醒时间，创建后不可变")
    status: DeliveryStatus = Field(default=DeliveryStatus.PENDING, description="当前状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    push_sent_at: datetime | None = Field(
        default=None,
        description="已交给推送通道的时间，None 表示尚未推送",
    )

    @model_validator(mode="after")
    def _check_remind_before_due(self) -> "Delivery":
        if self.remind_at > self.task_due_at:
            raise ValueError("remind_at must not be later than task_due_at")
        return self
