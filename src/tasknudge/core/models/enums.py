"""枚举定义 -- Delivery 状态机

包含 DeliveryStatus 状态、VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class DeliveryStatus(StrEnum):
    """Delivery 生命周期状态"""

    # 唯一的活跃状态
    PENDING = "PENDING"

    # 终态
    ACKNOWLEDGED = "ACKNOWLEDGED"
    DISMISSED = "DISMISSED"
    SUPERSEDED = "SUPERSEDED"


# 合法状态流转
VALID_TRANSITIONS: dict[DeliveryStatus, set[DeliveryStatus]] = {
    DeliveryStatus.PENDING: {
        DeliveryStatus.ACKNOWLEDGED,
        DeliveryStatus.DISMISSED,
        DeliveryStatus.SUPERSEDED,
    },
    # 终态不可再流转
    DeliveryStatus.ACKNOWLEDGED: set(),
    DeliveryStatus.DISMISSED: set(),
    DeliveryStatus.SUPERSEDED: set(),
}

TERMINAL_STATES: set[DeliveryStatus] = {
    DeliveryStatus.ACKNOWLEDGED,
    DeliveryStatus.DISMISSED,
    DeliveryStatus.SUPERSEDED,
}


def validate_transition(from_status: DeliveryStatus, to_status: DeliveryStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
