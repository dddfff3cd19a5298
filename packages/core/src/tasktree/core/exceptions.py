"""领域异常定义 -- 任务树 / 配额账本 / 分解编排

所有异常继承 TaskTreeError，携带稳定的 code，
Gateway 层按 code 映射 HTTP 状态与错误响应体。
"""


class TaskTreeError(Exception):
    """领域异常基类"""

    code: str = "TASKTREE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TaskNotFoundError(TaskTreeError):
    """任务不存在或不属于调用方"""

    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id


class InvalidParentError(TaskTreeError):
    """父任务不存在或不属于调用方"""

    code = "INVALID_PARENT"

    def __init__(self, parent_id: str) -> None:
        super().__init__(f"invalid parent task: {parent_id}")
        self.parent_id = parent_id


class DepthExceededError(TaskTreeError):
    """父任务已处于最大深度，不能再添加子任务"""

    code = "DEPTH_EXCEEDED"

    def __init__(self, parent_id: str, max_depth: int) -> None:
        super().__init__(
            f"cannot add a child under {parent_id}: maximum depth {max_depth} reached"
        )
        self.parent_id = parent_id
        self.max_depth = max_depth


class TaskTreeCorruptedError(TaskTreeError):
    """parent 链超过遍历上限（数据损坏或成环）"""

    code = "TASK_TREE_CORRUPTED"

    def __init__(self, task_id: str, walk_cap: int) -> None:
        super().__init__(
            f"parent chain of {task_id} exceeds {walk_cap} hops (corrupted or cyclic)"
        )
        self.task_id = task_id


class QuotaExceededError(TaskTreeError):
    """当月 AI 分解额度已用完"""

    code = "QUOTA_EXCEEDED"

    def __init__(self, owner_id: str, remaining: int = 0) -> None:
        super().__init__("monthly AI decomposition quota exhausted")
        self.owner_id = owner_id
        self.remaining = remaining


class ServiceUnavailableError(TaskTreeError):
    """生成服务未配置（凭证缺失）"""

    code = "AI_UNAVAILABLE"

    def __init__(self, message: str = "AI decomposition is not configured") -> None:
        super().__init__(message)


class DecompositionFailedError(TaskTreeError):
    """分解未产出可用子任务（输入含糊 / 上游无结果）"""

    code = "DECOMPOSITION_FAILED"

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(
            message or "could not break this task down; please add more detail"
        )
        self.reason = reason


class PersistenceError(TaskTreeError):
    """事务写入失败（已回滚）"""

    code = "PERSISTENCE_FAILED"


class InvalidPlanError(TaskTreeError):
    """套餐不存在"""

    code = "INVALID_PLAN"

    def __init__(self, plan_id: int) -> None:
        super().__init__(f"unknown plan: {plan_id}")
        self.plan_id = plan_id
