"""外部事实模型 -- 任务截止时间与用户提醒偏好

两者由外部系统维护、独立变化，本模块只读。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class TaskFact(BaseModel):
    """任务事实：due_at 为 None 时无法计算提醒"""

    task_id: str = Field(description="任务 ID")
    organization_id: str = Field(description="所属组织 ID")
    title: str = Field(default="", description="任务标题")
    due_at: datetime | None = Field(default=None, description="截止时间")
    completed: bool = Field(default=False, description="任务是否已完成或放弃")


class ReminderPreference(BaseModel):
    """提醒偏好：lead_minutes 为 None 表示不需要提醒"""

    task_id: str = Field(description="任务 ID")
    user_id: str = Field(description="用户 ID")
    lead_minutes: int | None = Field(default=None, description="截止前多少分钟提醒")
