"""Delivery 异常体系

NotFound / InvalidState / InvalidArgument 同步抛给调用方，由 gateway 映射为错误响应。
"""


class DeliveryError(Exception):
    """提醒投递基础异常"""

    code = "DELIVERY_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DeliveryNotFoundError(DeliveryError):
    """delivery 不存在，或存在但不属于当前用户/组织

    两种情况刻意合并，避免泄露其他租户数据的存在性。
    """

    code = "REMINDER_NOT_FOUND"

    def __init__(self, delivery_id: str) -> None:
        super().__init__(f"Reminder {delivery_id} not found or access denied")
        self.delivery_id = delivery_id


class TaskNotFoundError(DeliveryError):
    """任务不存在或当前上下文不可见"""

    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found or access denied")
        self.task_id = task_id


class InvalidDeliveryStateError(DeliveryError):
    """当前状态不允许请求的操作（终态流转、已过期任务的 snooze 等）"""

    code = "REMINDER_INVALID_STATE"

    def __init__(self, delivery_id: str, status: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Reminder {delivery_id} is {status} and cannot be changed"
        )
        self.delivery_id = delivery_id
        self.status = status


class InvalidArgumentError(DeliveryError):
    """参数非法（非正 snooze 时长、缺失标识符等）"""

    code = "INVALID_ARGUMENT"


class DeliveryStatusConflictError(DeliveryError):
    """CAS 状态更新失败 -- delivery 已被并发修改"""

    code = "REMINDER_STATUS_CONFLICT"

    def __init__(self, delivery_id: str) -> None:
        super().__init__(f"Reminder {delivery_id} was modified concurrently")
        self.delivery_id = delivery_id


class DeliveryConflictError(DeliveryError):
    """(task_id, user_id, remind_at) 唯一键冲突"""

    code = "REMINDER_CONFLICT"

    def __init__(self, task_id: str, user_id: str, remind_at: str) -> None:
        super().__init__(
            f"Reminder for task {task_id} at {remind_at} already exists"
        )
        self.task_id = task_id
        self.user_id = user_id
        self.remind_at = remind_at
