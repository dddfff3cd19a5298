"""Task Hierarchy Manager -- 深度受限的任务森林

所有读操作一次性加载用户全部任务并在内存中构建 parent -> children 邻接表，
不做逐节点查询。写操作（插入/更新/删除）不提交事务，由调用方负责。

深度从根计数（根为 1），新子任务总是针对"已存在的父节点"做深度检查，
因此无论重新分解多少次，树高都不会超过 MAX_TASK_DEPTH。
"""

from collections import defaultdict
from datetime import datetime

import structlog
from ulid import ULID

from .config import DEPTH_WALK_CAP, MAX_TASK_DEPTH
from .exceptions import (
    DepthExceededError,
    InvalidParentError,
    TaskNotFoundError,
    TaskTreeCorruptedError,
)
from .models.task import Task, TaskDraft, TaskNode
from .store.protocols import TaskStore

log = structlog.get_logger()


class TaskHierarchy:
    """任务树不变量的唯一维护者"""

    def __init__(
        self,
        task_store: TaskStore,
        max_depth: int = MAX_TASK_DEPTH,
        walk_cap: int = DEPTH_WALK_CAP,
    ) -> None:
        self._task_store = task_store
        self._max_depth = max_depth
        self._walk_cap = walk_cap

    @property
    def max_depth(self) -> int:
        return self._max_depth

    # ============================================================
    # 查询
    # ============================================================

    async def get_task(self, owner_id: str, task_id: str) -> Task:
        """查询任务，不存在或不属于调用方时抛出 TaskNotFoundError"""
        task = await self._task_store.get_task(owner_id, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def depth_of(self, owner_id: str, task_id: str) -> int:
        """计算任务深度（含自身，根为 1）

        Raises:
            TaskNotFoundError: 任务不存在
            TaskTreeCorruptedError: parent 链超过遍历上限
        """
        tasks = await self._load(owner_id)
        if task_id not in tasks:
            raise TaskNotFoundError(task_id)
        return self._depth_in(tasks, task_id)

    async def can_add_child_under(self, owner_id: str, parent_id: str) -> bool:
        """父任务深度小于上限时才允许添加子任务"""
        return await self.depth_of(owner_id, parent_id) < self._max_depth

    async def build_tree(self, owner_id: str) -> list[TaskNode]:
        """构建用户的完整任务森林（根为 parent_id 为空的节点）"""
        tasks = await self._load(owner_id)
        children = self._children_map(tasks)
        roots = [t for t in tasks.values() if t.is_root]
        return [self._to_node(root, children, depth=1) for root in roots]

    async def build_subtree(self, owner_id: str, task_id: str) -> TaskNode:
        """构建以 task_id 为根的子树视图（depth 为节点在森林中的真实深度）"""
        tasks = await self._load(owner_id)
        if task_id not in tasks:
            raise TaskNotFoundError(task_id)
        depth = self._depth_in(tasks, task_id)
        return self._to_node(tasks[task_id], self._children_map(tasks), depth=depth)

    # ============================================================
    # 写操作（不提交）
    # ============================================================

    async def create_root(self, owner_id: str, draft: TaskDraft, now: datetime) -> Task:
        """创建根任务"""
        task = self._new_task(owner_id, None, draft, now)
        await self._task_store.insert_task(task)
        log.debug("task_root_created", owner_id=owner_id, task_id=task.task_id)
        return task

    async def create_child(
        self,
        owner_id: str,
        parent_id: str,
        draft: TaskDraft,
        now: datetime,
    ) -> Task:
        """在已存在的父任务下创建子任务

        Raises:
            InvalidParentError: 父任务不存在或不属于调用方
            DepthExceededError: 父任务已处于最大深度
        """
        created = await self.create_children(owner_id, parent_id, [draft], now)
        return created[0]

    async def create_children(
        self,
        owner_id: str,
        parent_id: str,
        drafts: list[TaskDraft],
        now: datetime,
    ) -> list[Task]:
        """在同一父任务下批量创建子任务（深度只检查一次）"""
        tasks = await self._load(owner_id)
        if parent_id not in tasks:
            raise InvalidParentError(parent_id)
        if self._depth_in(tasks, parent_id) >= self._max_depth:
            raise DepthExceededError(parent_id, self._max_depth)

        created: list[Task] = []
        for draft in drafts:
            task = self._new_task(owner_id, parent_id, draft, now)
            await self._task_store.insert_task(task)
            created.append(task)
        log.debug(
            "task_children_created",
            owner_id=owner_id,
            parent_id=parent_id,
            count=len(created),
        )
        return created

    async def update_fields(
        self,
        owner_id: str,
        task_id: str,
        draft: TaskDraft,
        now: datetime,
    ) -> Task:
        """全字段更新，始终保留已存储的 parent_id"""
        existing = await self.get_task(owner_id, task_id)
        updated = existing.model_copy(
            update={
                "title": draft.title,
                "description": draft.description,
                "due_date": draft.due_date,
                "priority": draft.priority,
                "status": draft.status,
                "updated_at": now,
            }
        )
        await self._task_store.update_task_fields(updated)
        return updated

    async def mark_decomposed(self, owner_id: str, task_id: str, now: datetime) -> None:
        await self._task_store.set_decomposed_at(owner_id, task_id, now)

    async def delete_subtree(self, owner_id: str, task_id: str) -> int:
        """后序删除全部后代再删除节点自身，返回删除行数"""
        return await self._delete_post_order(owner_id, task_id, include_self=True)

    async def delete_descendants(self, owner_id: str, task_id: str) -> int:
        """后序删除全部后代，保留节点自身，返回删除行数"""
        return await self._delete_post_order(owner_id, task_id, include_self=False)

    # ============================================================
    # 内部方法
    # ============================================================

    async def _load(self, owner_id: str) -> dict[str, Task]:
        tasks = await self._task_store.list_tasks_for_owner(owner_id)
        return {t.task_id: t for t in tasks}

    def _depth_in(self, tasks: dict[str, Task], task_id: str) -> int:
        depth = 0
        current: str | None = task_id
        while current is not None:
            depth += 1
            if depth > self._walk_cap:
                log.error("task_tree_corrupted", task_id=task_id, walk_cap=self._walk_cap)
                raise TaskTreeCorruptedError(task_id, self._walk_cap)
            node = tasks.get(current)
            if node is None:
                break
            current = node.parent_id
        return depth

    @staticmethod
    def _children_map(tasks: dict[str, Task]) -> dict[str, list[Task]]:
        # tasks 已按 created_at、插入顺序排列，子列表继承该顺序
        children: dict[str, list[Task]] = defaultdict(list)
        for task in tasks.values():
            if task.parent_id is not None:
                children[task.parent_id].append(task)
        return children

    def _to_node(
        self,
        task: Task,
        children: dict[str, list[Task]],
        depth: int,
    ) -> TaskNode:
        if depth > self._walk_cap:
            raise TaskTreeCorruptedError(task.task_id, self._walk_cap)
        return TaskNode(
            **task.model_dump(),
            depth=depth,
            children=[
                self._to_node(child, children, depth + 1)
                for child in children.get(task.task_id, [])
            ],
        )

    async def _delete_post_order(
        self,
        owner_id: str,
        task_id: str,
        include_self: bool,
    ) -> int:
        tasks = await self._load(owner_id)
        if task_id not in tasks:
            raise TaskNotFoundError(task_id)
        children = self._children_map(tasks)

        # 迭代式后序遍历：子节点总是先于父节点出现在 order 中
        order: list[str] = []
        stack: list[tuple[str, bool]] = [(task_id, False)]
        visited: set[str] = set()
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                order.append(node_id)
                continue
            if node_id in visited:
                raise TaskTreeCorruptedError(node_id, self._walk_cap)
            visited.add(node_id)
            stack.append((node_id, True))
            for child in reversed(children.get(node_id, [])):
                stack.append((child.task_id, False))

        if not include_self:
            order.pop()

        removed = 0
        for node_id in order:
            removed += await self._task_store.delete_task(owner_id, node_id)
        log.debug(
            "task_subtree_deleted",
            owner_id=owner_id,
            task_id=task_id,
            include_self=include_self,
            removed=removed,
        )
        return removed

    @staticmethod
    def _new_task(
        owner_id: str,
        parent_id: str | None,
        draft: TaskDraft,
        now: datetime,
    ) -> Task:
        return Task(
            task_id=str(ULID()),
            owner_id=owner_id,
            parent_id=parent_id,
            title=draft.title,
            description=draft.description,
            due_date=draft.due_date,
            priority=draft.priority,
            status=draft.status,
            created_at=now,
            updated_at=now,
        )
