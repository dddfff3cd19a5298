"""TaskTree Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    AdjustmentKind,
    TaskPriority,
    TaskStatus,
    normalize_priority,
    normalize_status,
)
from .quota import Plan, QuotaAdjustment, QuotaStatus, ResolvedPlan, UsageRecord
from .task import Task, TaskDraft, TaskNode, parse_due_date

__all__ = [
    # 枚举
    "TaskPriority",
    "TaskStatus",
    "AdjustmentKind",
    "normalize_priority",
    "normalize_status",
    # Task
    "Task",
    "TaskDraft",
    "TaskNode",
    "parse_due_date",
    # 配额
    "Plan",
    "UsageRecord",
    "QuotaAdjustment",
    "QuotaStatus",
    "ResolvedPlan",
]
