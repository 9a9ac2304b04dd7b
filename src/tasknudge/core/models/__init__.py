"""TaskNudge Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .delivery import Delivery, UserContext
from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    DeliveryStatus,
    validate_transition,
)
from .facts import ReminderPreference, TaskFact

__all__ = [
    # 枚举
    "DeliveryStatus",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Delivery
    "Delivery",
    "UserContext",
    # 外部事实
    "TaskFact",
    "ReminderPreference",
]
