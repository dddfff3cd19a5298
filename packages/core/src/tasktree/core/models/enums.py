"""枚举定义 -- 任务优先级、任务状态、配额调整类型

非法或缺失的优先级/状态输入统一降级为默认值（NORMAL / TODO），
与外部表单宽松输入保持兼容。
"""

from enum import StrEnum


class TaskPriority(StrEnum):
    """任务优先级"""

    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"


class TaskStatus(StrEnum):
    """任务状态"""

    TODO = "TODO"
    DOING = "DOING"
    DONE = "DONE"


class AdjustmentKind(StrEnum):
    """配额调整类型（幂等标记）"""

    ROLLOVER = "rollover"
    CREDIT_PACK = "credit_pack"


def normalize_priority(value: str | TaskPriority | None) -> TaskPriority:
    """优先级正规化，非法值返回 NORMAL

    Args:
        value: 原始优先级值（大小写不敏感）

    Returns:
        TaskPriority
    """
    if value is None:
        return TaskPriority.NORMAL
    try:
        return TaskPriority(str(value).strip().upper())
    except ValueError:
        return TaskPriority.NORMAL


def normalize_status(value: str | TaskStatus | None) -> TaskStatus:
    """状态正规化，非法值返回 TODO"""
    if value is None:
        return TaskStatus.TODO
    try:
        return TaskStatus(str(value).strip().upper())
    except ValueError:
        return TaskStatus.TODO
