"""Store Protocol 接口定义

定义 TaskStore、UsageStore、PlanStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Protocol

from ..models.quota import Plan, QuotaAdjustment, UsageRecord
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口 -- 所有操作按 owner_id 限定"""

    async def insert_task(self, task: Task) -> None:
        """插入任务记录"""
        ...

    async def get_task(self, owner_id: str, task_id: str) -> Task | None:
        """按 (owner_id, task_id) 查询任务"""
        ...

    async def list_tasks_for_owner(self, owner_id: str) -> list[Task]:
        """一次性加载用户全部任务"""
        ...

    async def count_children(self, owner_id: str, parent_id: str) -> int:
        """统计直接子任务数"""
        ...

    async def update_task_fields(self, task: Task) -> None:
        """全字段更新（保留 parent_id）"""
        ...

    async def set_decomposed_at(
        self,
        owner_id: str,
        task_id: str,
        decomposed_at: datetime,
    ) -> None:
        """标记子任务最近一次生成时间"""
        ...

    async def delete_task(self, owner_id: str, task_id: str) -> int:
        """删除单个任务，返回删除行数"""
        ...


class UsageStore(Protocol):
    """月度用量存储接口 -- 只增不减"""

    async def get_usage(self, owner_id: str, year: int, month: int) -> UsageRecord | None:
        ...

    async def upsert_increment_used(
        self,
        owner_id: str,
        year: int,
        month: int,
        delta: int = 1,
    ) -> None:
        ...

    async def upsert_add_bonus(
        self,
        owner_id: str,
        year: int,
        month: int,
        amount: int,
    ) -> None:
        ...

    async def get_adjustment(self, adjustment_key: str) -> QuotaAdjustment | None:
        ...

    async def insert_adjustment(self, adjustment: QuotaAdjustment) -> bool:
        """写入幂等标记，键已存在时返回 False"""
        ...


class PlanStore(Protocol):
    """套餐与用户当前套餐存储接口"""

    async def get_plan(self, plan_id: int) -> Plan | None:
        ...

    async def list_plans(self) -> list[Plan]:
        ...

    async def get_account_plan_id(self, owner_id: str) -> int | None:
        ...

    async def set_account_plan(
        self,
        owner_id: str,
        plan_id: int,
        updated_at: datetime,
    ) -> None:
        ...
